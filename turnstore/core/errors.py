"""Application-level exception types.

This module defines the errors raised by storage adapters and configuration
code. Storage operations only ever fail with a ``StorageAppError`` subclass,
whose ``kind`` lets callers branch on data instead of on exception types.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and callers."""

    code: str
    message: str
    hint: str
    blob_name: str
    remaining_seconds: int
    error_summary: str
    http_status: int
    provider: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class ErrorKind(str, Enum):
    """The complete set of failures a storage operation can report."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    BACKEND_ERROR = "backend_error"


class StorageAppError(AppError):
    """Base class for every failure of a storage operation."""

    kind: ClassVar[ErrorKind]


class BlobNotFoundError(StorageAppError):
    """The target blob does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, blob_name: str) -> None:
        super().__init__(
            code="storage_not_found",
            message="File missing",
            details={"blob_name": blob_name},
        )
        self.blob_name = blob_name


class BlobConflictError(StorageAppError):
    """The blob exists and the operation required it to be absent."""

    kind = ErrorKind.CONFLICT

    def __init__(self, blob_name: str) -> None:
        super().__init__(
            code="storage_conflict",
            message="File already exists",
            details={"blob_name": blob_name},
        )
        self.blob_name = blob_name


class RateLimitedError(StorageAppError):
    """A backend cooldown is active; no request was or will be sent until it ends."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, remaining_seconds: int) -> None:
        super().__init__(
            code="storage_rate_limited",
            message=f"Please wait {remaining_seconds} seconds",
            details={"remaining_seconds": remaining_seconds},
        )
        self.remaining_seconds = remaining_seconds


class BackendError(StorageAppError):
    """Any other backend-reported or unparsable failure.

    Attributes:
        diagnostic: Raw text from the backend (or transport) for troubleshooting.
        status_code: HTTP status of the failed response, when there was one.
    """

    kind = ErrorKind.BACKEND_ERROR

    def __init__(self, diagnostic: str, *, status_code: int | None = None) -> None:
        details: ErrorDetails = {"error_summary": diagnostic}
        if status_code is not None:
            details["http_status"] = status_code
        super().__init__(
            code="storage_backend_error",
            message=diagnostic or "Unknown storage backend error",
            details=details,
        )
        self.diagnostic = diagnostic
        self.status_code = status_code
