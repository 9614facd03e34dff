"""Configuration utilities for Sugarlift."""

from .loader import (
    BundlrSettings,
    Config,
    LoggingSettings,
    SolanaSettings,
    StorageSettings,
    UploadSettings,
    load_config,
)

__all__ = [
    "BundlrSettings",
    "Config",
    "LoggingSettings",
    "SolanaSettings",
    "StorageSettings",
    "UploadSettings",
    "load_config",
]
