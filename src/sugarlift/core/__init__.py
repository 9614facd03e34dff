"""Core upload pipeline components for Sugarlift."""

from .assets import AssetPair, DataType, discover_assets
from .errors import (
    ContentTypeMismatchError,
    ExtensionMismatchError,
    FundingError,
    InsufficientBalanceError,
    PreflightError,
    SugarliftError,
    UploadAborted,
    UploadError,
    UploadErrorKind,
)

__all__ = [
    "AssetPair",
    "ContentTypeMismatchError",
    "DataType",
    "ExtensionMismatchError",
    "FundingError",
    "InsufficientBalanceError",
    "PreflightError",
    "SugarliftError",
    "UploadAborted",
    "UploadError",
    "UploadErrorKind",
    "discover_assets",
]
