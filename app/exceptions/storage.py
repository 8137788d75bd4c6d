"""Namespace and storage exceptions."""

from typing import Any

from .base import BaseAppException, NotFoundError


class FolderNotFoundError(NotFoundError):
    """Raised when a folder id does not resolve."""

    def __init__(self, folder_id: str | None = None, message: str = "Folder not found"):
        super().__init__(
            message=message,
            error_code="FOLDER_NOT_FOUND",
            details={"folder_id": folder_id} if folder_id else None,
        )


class FileRecordNotFoundError(NotFoundError):
    """Raised when a file id does not resolve."""

    def __init__(self, file_id: str | None = None, message: str = "File not found"):
        super().__init__(
            message=message,
            error_code="FILE_NOT_FOUND",
            details={"file_id": file_id} if file_id else None,
        )


class BlobMissingError(BaseAppException):
    """Raised when a file record exists but its blob does not."""

    def __init__(self, file_id: str | None = None, message: str = "File content is missing"):
        super().__init__(
            message=message,
            status_code=500,
            error_code="BLOB_MISSING",
            details={"file_id": file_id} if file_id else None,
        )


class DeleteFailedError(BaseAppException):
    """Raised when a file could not be deleted; its record is kept for a retry."""

    def __init__(self, message: str = "Failed to delete file", details: dict[str, Any] | None = None):
        super().__init__(
            message=message, status_code=500, error_code="DELETE_FAILED", details=details
        )


class PartialDeleteFailureError(BaseAppException):
    """Raised when a folder cascade stopped before removing everything."""

    def __init__(
        self, message: str = "Failed to delete folder contents", details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            status_code=500,
            error_code="PARTIAL_DELETE_FAILURE",
            details=details,
        )


class StoreUnavailableError(BaseAppException):
    """Raised when the metadata store cannot serve a request."""

    def __init__(self, message: str = "Storage is unavailable", details: dict[str, Any] | None = None):
        super().__init__(
            message=message, status_code=500, error_code="STORE_UNAVAILABLE", details=details
        )
