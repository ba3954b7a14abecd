"""
Domain exceptions for the gallery API.
Each error carries the HTTP status it maps to; main.py turns them into JSON responses.
"""
from typing import Any, Dict, Optional


class GalleryError(Exception):
    """
    Base exception for all gallery errors.

    Args:
        message: Human-readable description returned to the client
        error_code: Machine-stable error name
        details: Optional structured context (offending fields, ids, counts)
    """

    status_code: int = 500
    default_code: str = "GalleryError"

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(GalleryError):
    """Bad input: file type or size, malformed payload."""

    status_code = 400
    default_code = "ValidationError"


class NotFoundError(GalleryError):
    """Referenced entity does not exist."""

    status_code = 404
    default_code = "NotFoundError"


class DuplicateError(GalleryError):
    """Slug collision within one entity type."""

    status_code = 400
    default_code = "DuplicateError"


class ConstraintError(GalleryError):
    """Delete blocked by dependent records."""

    status_code = 400
    default_code = "ConstraintError"


class AuthError(GalleryError):
    """Missing or invalid bearer token."""

    status_code = 401
    default_code = "AuthError"


class ImageProcessingError(GalleryError):
    """A mandatory image derivative could not be produced."""

    status_code = 500
    default_code = "ImageProcessingError"


class StorageError(GalleryError):
    """
    Object storage failure.

    `reason` is one of "rejected" (non-retryable response), "exhausted"
    (transient failures on every attempt) or "not_ready" (client could not be
    initialised). `store_status` holds the last HTTP status from the store.
    """

    status_code = 500
    default_code = "StorageError"

    def __init__(
        self,
        message: str,
        *,
        reason: str = "rejected",
        store_status: Optional[int] = None,
        attempts: int = 0,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.reason = reason
        self.store_status = store_status
        self.attempts = attempts
        merged = {"reason": reason, "attempts": attempts}
        if store_status is not None:
            merged["storeStatus"] = store_status
        merged.update(details or {})
        super().__init__(message, error_code=error_code, details=merged)


class StorageNotReadyError(StorageError):
    def __init__(self, message: str = "Storage client is not configured") -> None:
        super().__init__(message, reason="not_ready", error_code="StorageNotReadyError")


class StorageRetryExhaustedError(StorageError):
    def __init__(self, message: str, *, store_status: Optional[int], attempts: int) -> None:
        super().__init__(
            message,
            reason="exhausted",
            store_status=store_status,
            attempts=attempts,
            error_code="StorageRetryExhaustedError",
        )
