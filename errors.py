"""Exception taxonomy for the storefront admin service."""

from typing import Iterable, List, Optional


class StorefrontAdminError(Exception):
    """Base exception for all storefront admin errors."""


class ConfigurationError(StorefrontAdminError):
    """Raised when the environment does not describe a usable configuration."""


class ValidationError(StorefrontAdminError):
    """Raised when a submitted form is incomplete or out of range.

    All problems found in one pass are collected into ``errors``.
    """

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid form")


class StagingError(StorefrontAdminError):
    """Raised when a single asset cannot be staged for upload."""

    def __init__(self, filename: str, message: str) -> None:
        super().__init__(message)
        self.filename = filename


class UnsupportedType(StagingError):
    """Raised when an asset's media type is not an accepted image type."""

    def __init__(self, filename: str, content_type: Optional[str]) -> None:
        super().__init__(filename, "Only JPEG/PNG images are allowed.")
        self.content_type = content_type


class TooLarge(StagingError):
    """Raised when an asset exceeds the upload size limit."""

    def __init__(self, filename: str, size: int, limit: int) -> None:
        super().__init__(filename, f"Each file must be less than {limit // (1024 * 1024)}MB.")
        self.size = size
        self.limit = limit


class UploadFailed(StorefrontAdminError):
    """Raised when the media host does not return a durable URL.

    ``completed`` counts assets that hold a remote URL when the failure
    happened; ``failed_index`` is the staged position that failed.
    """

    def __init__(self, reason: str, completed: int = 0, failed_index: Optional[int] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.completed = completed
        self.failed_index = failed_index


class PersistenceFailed(StorefrontAdminError):
    """Raised when the document store rejects a create."""


class DeletionFailed(StorefrontAdminError):
    """Raised when the document store rejects a delete."""


class ReadFailed(StorefrontAdminError):
    """Raised when a collection cannot be read from the document store."""


class PreviewError(StorefrontAdminError):
    """Raised when a preview handle is unknown or released twice."""


class DeletionNotRequested(StorefrontAdminError):
    """Raised when a deletion is confirmed without a pending request."""
