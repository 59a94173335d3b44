"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and the
rate limiter lifecycle) so tests can build isolated apps with their own
settings and clocks.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI

from ratewindow.api.routes import health_router, limits_router, root_router, user_router
from ratewindow.core.config import Settings, settings as default_settings
from ratewindow.core.exception_handlers import setup_exception_handlers
from ratewindow.core.logging import configure_logging
from ratewindow.core.middleware import request_id_middleware
from ratewindow.core.rate_limit import (
    GLOBAL_POLICY,
    ROUTE_POLICY,
    RateLimiterRegistry,
    rate_limit_dependency,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run store compaction for the app lifetime and release state on exit."""
    registry: RateLimiterRegistry = app.state.rate_limiters
    registry.start_all()
    try:
        yield
    finally:
        registry.shutdown_all()


def create_app(
    settings: Settings | None = None,
    registry: RateLimiterRegistry | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        settings: Optional settings; defaults to the environment-loaded ones.
        registry: Optional pre-built limiter registry (tests inject clocks).

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title=cfg.app.name,
        description=(
            "Sliding-window request rate limiter. Every limited route reports "
            "X-RateLimit-Limit, X-RateLimit-Remaining and X-RateLimit-Reset; "
            "throttled requests receive 429 with Retry-After."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=lifespan,
    )
    app.state.rate_limiters = registry or RateLimiterRegistry(cfg.rate_limit)

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers; /health stays outside every policy
    limited = [
        Depends(rate_limit_dependency(GLOBAL_POLICY)),
        Depends(rate_limit_dependency(ROUTE_POLICY)),
    ]
    api_router = APIRouter(prefix="/api")
    api_router.include_router(user_router)
    api_router.include_router(limits_router)

    app.include_router(health_router)
    app.include_router(root_router, dependencies=limited)
    app.include_router(api_router, dependencies=limited)

    logger.info(
        "app.created",
        extra={
            "app_env": cfg.app_env,
            "rate_limit_enabled": cfg.rate_limit.enabled,
            "policies": app.state.rate_limiters.names,
        },
    )
    return app
