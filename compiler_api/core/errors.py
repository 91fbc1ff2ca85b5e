"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    hint: str
    http_status: int
    upstream_error: Any
    field: str
    max_chars: int
    actual_chars: int
    supported: list[str]
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

    status_code = 500

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""

    status_code = 400


class AuthenticationAppError(AppError):
    """Raised when a request lacks a valid session or passcode."""

    status_code = 401


class NotFoundAppError(AppError):
    """Raised when an owned resource does not exist."""

    status_code = 404


class JudgeAppError(AppError):
    """Raised when the remote judge fails; carries the upstream status when known."""

    @property
    def http_status(self) -> int:
        if self.details and self.details.get("http_status"):
            return int(self.details["http_status"])
        return 500


class CounterStoreError(Exception):
    """Shared counter store unreachable or erroring.

    Never leaves the counter store adapter: the failover store absorbs it
    and routes the increment to the in-process fallback.
    """
