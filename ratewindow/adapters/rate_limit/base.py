"""Rate limit store interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the in-memory store could be replaced by a shared backend without changes
to the policies or routes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a single admission check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window the decision was evaluated against.
        remaining: Requests still available in the trailing window (0 when denied).
        reset_at: UNIX epoch seconds of ``now + window``.
        retry_after_seconds: Suggested wait in seconds when denied, else None.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int | None


class AbstractRateLimitStore(ABC):
    """Interface for per-key request history stores."""

    @abstractmethod
    def admit(self, key: str, limit: int, window_seconds: float) -> RateLimitDecision:
        """Decide whether one more request from ``key`` fits in the window.

        Args:
            key: Non-empty identifier (e.g., client IP, hashed API key).
            limit: Max requests per trailing window. 0 denies everything.
            window_seconds: Length of the trailing window in seconds.

        Returns:
            RateLimitDecision describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def compact(self) -> int:
        """Drop history older than the retention threshold.

        Returns:
            Number of keys removed from the store.
        """
        raise NotImplementedError

    @abstractmethod
    def shutdown(self) -> None:
        """Stop background maintenance and release all state. Idempotent."""
        raise NotImplementedError

    @property
    @abstractmethod
    def closed(self) -> bool:
        """Whether shutdown() has been called."""
        raise NotImplementedError
