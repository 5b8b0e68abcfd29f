"""
Error taxonomy shared by the service layer and the HTTP surface.

Services raise these; ``photoshelf.main`` renders them as JSON with the
status code carried by each class.
"""

from __future__ import annotations

from typing import Any


class PhotoshelfError(Exception):
    """Base exception for every failure reported to a caller."""

    status_code = 500
    default_code = "error"

    def __init__(self, message: str, code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.details}


class Unauthorized(PhotoshelfError):
    """Caller identity is missing, invalid, or not the required owner."""

    status_code = 401
    default_code = "unauthorized"


class Forbidden(PhotoshelfError):
    """Caller owns the parent resource but referenced something owned by someone else."""

    status_code = 403
    default_code = "forbidden"


class NotFound(PhotoshelfError):
    """Row is absent, or not visible under the caller's read policy."""

    status_code = 404
    default_code = "not_found"


class ValidationError(PhotoshelfError):
    status_code = 400
    default_code = "validation_failed"


class Conflict(PhotoshelfError):
    status_code = 409
    default_code = "conflict"


class StorageError(PhotoshelfError):
    """Blob store failure, reported independently of database errors."""

    status_code = 503
    default_code = "storage_error"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(message, code=code, details=details)
        self.original_exception = original_exception
