"""Rate limiting stores.

This package provides a small abstraction layer so the service can run on an
in-memory sliding-window store and later migrate to a shared backend without
changing the policy or API layers.
"""

from ratewindow.adapters.rate_limit.base import AbstractRateLimitStore, RateLimitDecision
from ratewindow.adapters.rate_limit.in_memory import SlidingWindowStore

__all__ = ["AbstractRateLimitStore", "RateLimitDecision", "SlidingWindowStore"]
