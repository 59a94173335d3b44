"""Application-level exception types.

This module defines domain errors used across the limiter store, policies and
HTTP layer, enabling consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep the shape flexible while encouraging
    consistent keys across the codebase.
    """

    code: str
    message: str
    hint: str
    field: str
    min_value: float
    actual_value: Any
    http_status: int
    policy: str
    limit: int
    remaining: int
    reset_at: int
    retry_after: int
    request_id: str
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
    """Raised when caller input violates the contract (e.g., empty key)."""


class ConfigurationAppError(AppError):
    """Raised when a store or policy is constructed with invalid settings."""


@dataclass
class RateLimitExceededAppError(AppError):
    """Raised by the HTTP layer when a policy denies a request.

    Attributes:
        status_code: HTTP status configured for the denying policy.
        headers: Retry-After / X-RateLimit-* headers to send with the rejection.
    """

    status_code: int = 429
    headers: dict[str, str] | None = None


class StoreClosedAppError(AppError):
    """Raised when a store is used after shutdown()."""
