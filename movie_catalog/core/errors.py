"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep shapes consistent across the codebase while
    letting each error kind carry only what it needs.
    """

    fields: dict[str, str]
    movie_id: int
    expected_version: int
    current_version: int
    limit: int
    remaining: int
    retry_after: int
    operation: str
    timeout_s: float
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
    """Raised when user input fails field-level validation."""

    @classmethod
    def from_fields(cls, fields: dict[str, str]) -> "ValidationAppError":
        return cls(
            code="failed_validation",
            message="one or more fields failed validation",
            details={"fields": dict(fields)},
        )


class BadRequestAppError(AppError):
    """Raised when a request cannot be parsed (malformed body, bad types)."""


class NotFoundAppError(AppError):
    """Raised when the requested record does not exist."""


class EditConflictAppError(AppError):
    """Raised when an optimistic-lock update loses a concurrent write race."""


class RateLimitedAppError(AppError):
    """Raised when a client exceeds its request budget."""


class StorageAppError(AppError):
    """Raised when the database fails for reasons other than a timeout."""


class StorageTimeoutAppError(StorageAppError):
    """Raised when the database does not answer within the query ceiling."""


class InternalAppError(AppError):
    """Raised on programmer/invariant violations (logic defects)."""


def not_found() -> NotFoundAppError:
    return NotFoundAppError(
        code="not_found",
        message="the requested resource could not be found",
    )


def edit_conflict(details: ErrorDetails | None = None) -> EditConflictAppError:
    return EditConflictAppError(
        code="edit_conflict",
        message="unable to update the record due to an edit conflict, please try again",
        details=details,
    )
