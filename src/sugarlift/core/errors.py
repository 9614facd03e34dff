"""Error types shared by the upload pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SugarliftError(Exception):
    """Base class for pipeline errors."""


class PreflightError(SugarliftError):
    """Raised before any upload starts; nothing has been committed."""


class ExtensionMismatchError(PreflightError):
    """Raised when a batch mixes file extensions and the content type would be ambiguous."""

    def __init__(self, extensions: set[str]) -> None:
        self.extensions = extensions
        super().__init__(f"Invalid file extension: {sorted(extensions)}")


class MissingCacheItemError(PreflightError):
    """Raised when an asset has no entry in the cache."""

    def __init__(self, asset_id: str) -> None:
        self.asset_id = asset_id
        super().__init__(f"Failed to get cache item for asset {asset_id!r}")


class ContentTypeMismatchError(SugarliftError):
    """Raised when a file does not match the Content-Type tag it would be uploaded with."""

    def __init__(self, path: str, content_type: str) -> None:
        self.path = path
        self.content_type = content_type
        super().__init__(f"File {path} does not match content type {content_type}")


class FundingError(SugarliftError):
    """Raised when the Bundlr balance could not be topped up."""


class InsufficientBalanceError(FundingError):
    """Raised when the balance is still short after the verification budget is spent."""

    def __init__(self, address: str, balance: int, required: int) -> None:
        self.address = address
        self.balance = balance
        self.required = required
        super().__init__(
            f"No Bundlr balance found for address {address} "
            f"(balance {balance} lamports, required {required} lamports)"
        )


class UploadAborted(SugarliftError):
    """Raised when an upload run was interrupted before every task was dispatched."""

    def __init__(self, message: str, report: object | None = None) -> None:
        self.report = report
        super().__init__(message)


class UploadErrorKind(str, Enum):
    INSUFFICIENT_BALANCE = "insufficient_balance"
    SEND_DATA_FAILED = "send_data_failed"
    CONTENT_TYPE_MISMATCH = "content_type_mismatch"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class UploadError:
    """Why a specific asset failed to upload."""

    kind: UploadErrorKind
    message: str
    asset_id: str | None = None

    def __str__(self) -> str:
        if self.asset_id is None:
            return self.message
        return f"[{self.asset_id}] {self.message}"
