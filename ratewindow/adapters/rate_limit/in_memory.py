"""In-memory sliding-window-log rate limit store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: one lock guards the whole key -> timestamps mapping.
- Memory is bounded by a background compaction thread that drops keys whose
  history is older than the retention threshold.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from typing import Callable

from ratewindow.adapters.rate_limit.base import AbstractRateLimitStore, RateLimitDecision
from ratewindow.core.errors import (
    ConfigurationAppError,
    StoreClosedAppError,
    ValidationAppError,
)

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_SECONDS = 600.0
DEFAULT_COMPACTION_INTERVAL_SECONDS = 60.0


class SlidingWindowStore(AbstractRateLimitStore):
    """Exact sliding-window store keeping one timestamp per admitted request.

    Unlike a fixed-bucket counter, the window boundary moves continuously with
    the clock, so a key is admitted only while fewer than ``limit`` of its
    recorded requests are newer than ``now - window``.

    Timestamps for a key are appended in observation order, which keeps every
    deque sorted and lets expired entries be popped from the left.

    Important:
        One store backs one policy. Policies never share a store, even when
        their keys collide.
    """

    def __init__(
        self,
        *,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        compaction_interval_seconds: float = DEFAULT_COMPACTION_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
        start_compactor: bool = True,
    ) -> None:
        """Initialize the store.

        Args:
            retention_seconds: History older than this is dropped by compact().
                Must exceed the largest window the store is used with.
            compaction_interval_seconds: Delay between background compactions.
            clock: Time source function returning UNIX time in seconds.
            start_compactor: Start the background compaction thread now.

        Raises:
            ConfigurationAppError: If retention or interval are not positive.
        """
        if retention_seconds <= 0:
            raise ConfigurationAppError(
                code="invalid_retention",
                message="retention_seconds must be > 0",
                details={"field": "retention_seconds", "actual_value": retention_seconds},
            )
        if compaction_interval_seconds <= 0:
            raise ConfigurationAppError(
                code="invalid_compaction_interval",
                message="compaction_interval_seconds must be > 0",
                details={
                    "field": "compaction_interval_seconds",
                    "actual_value": compaction_interval_seconds,
                },
            )

        self._retention = float(retention_seconds)
        self._interval = float(compaction_interval_seconds)
        self._clock = clock
        self._lock = threading.RLock()
        self._windows: dict[str, deque[float]] = {}
        self._closed = False
        self._stop_event = threading.Event()
        self._compactor: threading.Thread | None = None

        if start_compactor:
            self.start()

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"SlidingWindowStore(retention_seconds={self._retention}, "
            f"compaction_interval_seconds={self._interval}, "
            f"keys={len(self._windows)}, closed={self._closed})"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._windows

    @property
    def retention_seconds(self) -> float:
        return self._retention

    @property
    def closed(self) -> bool:
        return self._closed

    def admit(self, key: str, limit: int, window_seconds: float) -> RateLimitDecision:
        """Check the trailing window for ``key`` and record the request if it fits.

        Expired timestamps for the key are evicted here, so a hot key never
        waits for compaction to see its window slide.

        Args:
            key: Non-empty identifier for rate limiting.
            limit: Max requests per trailing window. 0 denies every request.
            window_seconds: Trailing window length in seconds.

        Returns:
            RateLimitDecision with allowance decision and metadata. A denied
            request is not recorded and does not consume quota.

        Raises:
            ValidationAppError: If key is empty or not a string.
            StoreClosedAppError: If the store was shut down.
        """
        if not isinstance(key, str) or not key:
            raise ValidationAppError(
                code="invalid_rate_limit_key",
                message="key must be a non-empty string",
            )

        with self._lock:
            if self._closed:
                raise StoreClosedAppError(
                    code="rate_limit_store_closed",
                    message="Rate limit store has been shut down",
                )

            # Read under the lock so appends per key stay in clock order.
            now = self._clock()
            window_start = now - window_seconds
            reset_at = now + window_seconds

            history = self._windows.get(key)
            if history is not None:
                while history and history[0] <= window_start:
                    history.popleft()
                if not history:
                    del self._windows[key]
                    history = None

            count = len(history) if history is not None else 0

            if count < limit:
                if history is None:
                    history = deque()
                    self._windows[key] = history
                history.append(now)
                return RateLimitDecision(
                    allowed=True,
                    limit=limit,
                    remaining=limit - count - 1,
                    reset_at=reset_at,
                    retry_after_seconds=None,
                )

            oldest = history[0] if history else None

        if oldest is None:
            retry_after = window_seconds
        else:
            retry_after = oldest + window_seconds - now
        return RateLimitDecision(
            allowed=False,
            limit=limit,
            remaining=0,
            reset_at=reset_at,
            retry_after_seconds=max(1, int(math.ceil(retry_after))),
        )

    def compact(self) -> int:
        """Drop timestamps older than the retention threshold for every key.

        Keys left without history are removed entirely, so their next request
        behaves like a never-seen key.

        Returns:
            Number of keys evicted.
        """
        evicted = 0

        with self._lock:
            if self._closed:
                return 0
            cutoff = self._clock() - self._retention
            for key in list(self._windows):
                history = self._windows[key]
                while history and history[0] <= cutoff:
                    history.popleft()
                if not history:
                    del self._windows[key]
                    evicted += 1
            tracked = len(self._windows)

        logger.debug(
            "rate_limit.compacted",
            extra={
                "evicted_keys": evicted,
                "tracked_keys": tracked,
                "retention_s": self._retention,
            },
        )
        return evicted

    def start(self) -> None:
        """Start the background compaction thread (no-op if already running).

        Raises:
            StoreClosedAppError: If the store was shut down.
        """
        with self._lock:
            if self._closed:
                raise StoreClosedAppError(
                    code="rate_limit_store_closed",
                    message="Cannot start compaction on a closed store",
                )
            if self._compactor is not None and self._compactor.is_alive():
                return
            self._stop_event.clear()
            self._compactor = threading.Thread(
                target=self._run_compactor,
                name="rate-limit-compactor",
                daemon=True,
            )
            self._compactor.start()

        logger.debug(
            "rate_limit.compactor_started",
            extra={"interval_s": self._interval, "retention_s": self._retention},
        )

    def _run_compactor(self) -> None:
        # Event.wait returns True once shutdown() sets the event.
        while not self._stop_event.wait(self._interval):
            try:
                self.compact()
            except Exception:
                logger.exception("rate_limit.compaction_failed")

    def shutdown(self) -> None:
        """Stop background compaction and release all stored history.

        Safe to call more than once; later calls do nothing.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            compactor = self._compactor
            self._compactor = None
            self._stop_event.set()
            self._windows.clear()

        if compactor is not None and compactor is not threading.current_thread():
            compactor.join(timeout=self._interval)

        logger.debug("rate_limit.store_closed")

    def tracked_keys(self) -> int:
        """Return the number of keys with stored history."""
        return len(self)

    def stats(self) -> dict[str, int | float | bool]:
        """Return lightweight store metrics without exposing keys."""

        with self._lock:
            return {
                "tracked_keys": len(self._windows),
                "stored_timestamps": sum(len(h) for h in self._windows.values()),
                "retention_seconds": self._retention,
                "compaction_interval_seconds": self._interval,
                "compactor_running": self._compactor is not None and self._compactor.is_alive(),
                "closed": self._closed,
            }
