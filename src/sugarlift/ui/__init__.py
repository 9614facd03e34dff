"""UI components for Sugarlift."""

from .progress import Spinner, UploadProgress

__all__ = ["Spinner", "UploadProgress"]
