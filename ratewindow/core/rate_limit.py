"""Rate limiting policies and FastAPI dependencies.

This module wires the sliding-window store into the HTTP layer.

Design goals:
- One policy, one store: policies never share state, even if keys collide.
- Minimal coupling: routes depend on a dependency factory only.
- Swap-friendly: policies talk to AbstractRateLimitStore, not the concrete
  in-memory implementation.

Default policies (see RateLimitSettings):
- global: per client IP on every limited route.
- route: per client IP and path.
- user: per API key (falls back to client IP) on /api/user routes.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable

from fastapi import Request, Response

from ratewindow.adapters.rate_limit.base import AbstractRateLimitStore, RateLimitDecision
from ratewindow.adapters.rate_limit.in_memory import SlidingWindowStore
from ratewindow.core.config import RateLimitSettings, settings
from ratewindow.core.errors import ConfigurationAppError, RateLimitExceededAppError
from ratewindow.core.logging import hash_key

logger = logging.getLogger(__name__)

KeyFunc = Callable[[Request], str]

GLOBAL_POLICY = "global"
ROUTE_POLICY = "route"
USER_POLICY = "user"


def client_ip_key(request: Request) -> str:
    """Key requests by client address."""

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def ip_and_path_key(request: Request) -> str:
    """Key requests by client address and request path."""

    return f"{client_ip_key(request)}:path:{request.url.path}"


def user_or_ip_key(request: Request) -> str:
    """Key requests by API key when present, else by client address.

    The API key is hashed so raw credentials never live in the store.
    """

    api_key = request.headers.get("X-API-Key")
    if api_key:
        return f"user:{hash_key(api_key)}"
    return client_ip_key(request)


@dataclass(frozen=True)
class RateLimitPolicy:
    """One configured combination of limit, window and key derivation.

    Attributes:
        name: Unique policy name (used in logs and error details).
        limit: Max requests per window. 0 rejects every request.
        window_seconds: Trailing window length in seconds.
        key_func: Derives the limiter key from the incoming request.
        message: Message returned to throttled clients.
        status_code: HTTP status returned to throttled clients.
    """

    name: str
    limit: int
    window_seconds: float
    key_func: KeyFunc = field(default=client_ip_key, compare=False)
    message: str = "Too many requests, please try again later."
    status_code: int = 429

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigurationAppError(
                code="invalid_policy_name",
                message="policy name must be a non-empty string",
            )
        if self.limit < 0:
            raise ConfigurationAppError(
                code="invalid_limit",
                message="limit must be >= 0",
                details={"field": "limit", "actual_value": self.limit, "policy": self.name},
            )
        if self.window_seconds <= 0:
            raise ConfigurationAppError(
                code="invalid_window",
                message="window_seconds must be > 0",
                details={
                    "field": "window_seconds",
                    "actual_value": self.window_seconds,
                    "policy": self.name,
                },
            )


class PolicyLimiter:
    """Applies one policy against its own isolated store."""

    def __init__(self, policy: RateLimitPolicy, store: AbstractRateLimitStore) -> None:
        retention = getattr(store, "retention_seconds", None)
        if retention is not None and policy.window_seconds >= retention:
            raise ConfigurationAppError(
                code="window_exceeds_retention",
                message="policy window must be shorter than the store retention threshold",
                details={
                    "policy": policy.name,
                    "actual_value": policy.window_seconds,
                    "hint": f"retention_seconds is {retention}",
                },
            )
        self.policy = policy
        self.store = store

    def key_for(self, request: Request) -> str:
        return self.policy.key_func(request)

    def check(self, key: str) -> RateLimitDecision:
        return self.store.admit(key, self.policy.limit, self.policy.window_seconds)


def build_default_policies(cfg: RateLimitSettings) -> list[RateLimitPolicy]:
    """Build the global, per-route and per-user policies from settings."""

    return [
        RateLimitPolicy(
            name=GLOBAL_POLICY,
            limit=cfg.global_requests,
            window_seconds=cfg.global_window_seconds,
            key_func=client_ip_key,
            message=cfg.message,
            status_code=cfg.status_code,
        ),
        RateLimitPolicy(
            name=ROUTE_POLICY,
            limit=cfg.route_requests,
            window_seconds=cfg.route_window_seconds,
            key_func=ip_and_path_key,
            message=cfg.message,
            status_code=cfg.status_code,
        ),
        RateLimitPolicy(
            name=USER_POLICY,
            limit=cfg.user_requests,
            window_seconds=cfg.user_window_seconds,
            key_func=user_or_ip_key,
            message=cfg.message,
            status_code=cfg.status_code,
        ),
    ]


class RateLimiterRegistry:
    """Owns every policy limiter of the application and their stores.

    Stores are created with their compactor stopped; start_all() and
    shutdown_all() are driven by the application lifespan.
    """

    def __init__(
        self,
        rate_limit_settings: RateLimitSettings | None = None,
        *,
        policies: Iterable[RateLimitPolicy] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = rate_limit_settings or settings.rate_limit
        self._clock = clock
        self._limiters: dict[str, PolicyLimiter] = {}

        if policies is None:
            policies = build_default_policies(self.settings)
        for policy in policies:
            self.register(policy)

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    @property
    def names(self) -> list[str]:
        return list(self._limiters)

    def register(self, policy: RateLimitPolicy) -> PolicyLimiter:
        """Create an isolated store for ``policy`` and register it.

        Raises:
            ConfigurationAppError: If the policy name is already registered or
                its window is not shorter than the retention threshold.
        """
        if policy.name in self._limiters:
            raise ConfigurationAppError(
                code="duplicate_policy",
                message=f"policy '{policy.name}' is already registered",
                details={"policy": policy.name},
            )
        limiter = PolicyLimiter(policy, self._build_store())
        self._limiters[policy.name] = limiter
        return limiter

    def _build_store(self) -> SlidingWindowStore:
        return SlidingWindowStore(
            retention_seconds=self.settings.retention_seconds,
            compaction_interval_seconds=self.settings.compaction_interval_seconds,
            clock=self._clock,
            start_compactor=False,
        )

    def get(self, name: str) -> PolicyLimiter:
        try:
            return self._limiters[name]
        except KeyError:
            raise ConfigurationAppError(
                code="unknown_policy",
                message=f"rate limit policy '{name}' is not registered",
                details={"policy": name},
            ) from None

    def start_all(self) -> None:
        """Start every compactor, replacing stores closed by an earlier shutdown."""
        for limiter in self._limiters.values():
            if limiter.store.closed:
                limiter.store = self._build_store()
            limiter.store.start()
        logger.info(
            "rate_limit.compactors_started",
            extra={"policies": self.names},
        )

    def shutdown_all(self) -> None:
        for limiter in self._limiters.values():
            limiter.store.shutdown()
        logger.info(
            "rate_limit.stores_closed",
            extra={"policies": self.names},
        )

    def stats(self) -> dict[str, dict]:
        return {
            name: {
                "limit": limiter.policy.limit,
                "window_seconds": limiter.policy.window_seconds,
                **limiter.store.stats(),
            }
            for name, limiter in self._limiters.items()
        }


def _build_rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(int(math.ceil(decision.reset_at))),
    }


def rate_limit_dependency(policy_name: str) -> Callable:
    """Build a FastAPI dependency enforcing the named policy.

    When enabled, records one request against the requester's key. Allowed
    requests get informational X-RateLimit-* headers; denied requests raise
    RateLimitExceededAppError, rendered by the global exception handlers.

    Usage:
        @router.get("/", dependencies=[Depends(rate_limit_dependency("global"))])

    Args:
        policy_name: Name of a policy registered on app.state.rate_limiters.

    Returns:
        Async dependency callable.
    """

    async def enforce_rate_limit(request: Request, response: Response) -> None:
        registry: RateLimiterRegistry = request.app.state.rate_limiters
        if not registry.enabled:
            return

        limiter = registry.get(policy_name)
        key = limiter.key_for(request)
        key_hash = hash_key(key)
        decision = limiter.check(key)
        include_headers = registry.settings.include_headers

        if decision.allowed:
            logger.info(
                "rate_limit.allowed",
                extra={
                    "policy": policy_name,
                    "key_hash": key_hash,
                    "limit": decision.limit,
                    "remaining": decision.remaining,
                    "window_s": limiter.policy.window_seconds,
                },
            )
            if include_headers:
                response.headers.update(_build_rate_limit_headers(decision))
            return

        retry_after = decision.retry_after_seconds or 0
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "policy": policy_name,
                "key_hash": key_hash,
                "limit": decision.limit,
                "window_s": limiter.policy.window_seconds,
                "retry_after_s": retry_after,
            },
        )

        headers: dict[str, str] | None = None
        if include_headers:
            headers = {"Retry-After": str(retry_after), **_build_rate_limit_headers(decision)}

        raise RateLimitExceededAppError(
            code="rate_limit_exceeded",
            message=limiter.policy.message,
            details={
                "policy": policy_name,
                "limit": decision.limit,
                "reset_at": int(math.ceil(decision.reset_at)),
                "retry_after": retry_after,
            },
            status_code=limiter.policy.status_code,
            headers=headers,
        )

    enforce_rate_limit.__name__ = f"enforce_{policy_name}_rate_limit"
    return enforce_rate_limit
