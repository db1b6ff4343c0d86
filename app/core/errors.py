"""Application-level exception types.

This module defines the relay's error taxonomy. Every kind is terminal for
the current request and maps to a distinct, machine-readable code in the API
response; none is fatal to the process.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error kind only carries what it knows.
    """

    hint: str
    limit: int
    count: int
    window: str
    window_seconds: int
    reset_at: int
    retry_after: int
    max_bytes: int
    actual_bytes: int
    max_chars: int
    attempts: int
    statuses: list[int | None]
    errors: list[dict[str, Any]]
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


class AuthenticationAppError(AppError):
    """Raised when the API credential is missing or wrong."""


class ValidationAppError(AppError):
    """Raised when the inbound body is unparseable, malformed or oversized."""


class ConfigurationAppError(AppError):
    """Raised when the relay is misconfigured (e.g. no endpoints)."""


class StoreUnavailableAppError(AppError):
    """Raised when the counter backend cannot be reached."""


class DispatchExhaustedAppError(AppError):
    """Raised when every attempted endpoint failed."""


@dataclass
class RateLimitAppError(AppError):
    """Raised when a short or long window quota is exceeded.

    Attributes:
        window: ``"short"`` or ``"long"``.
        retry_after_seconds: Seconds until the exceeded window resets.
        limit: Quota of the exceeded window.
        reset_at: UNIX epoch seconds when the exceeded window resets.
    """

    window: str = "short"
    retry_after_seconds: int = 0
    limit: int = 0
    reset_at: int = 0
