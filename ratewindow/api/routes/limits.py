from __future__ import annotations

from fastapi import APIRouter, Request

from ratewindow.core.rate_limit import RateLimiterRegistry
from ratewindow.schemas.rate_limit import RateLimitStatsResponse

router = APIRouter(prefix="/rate-limit", tags=["Rate Limit"])


@router.get("/stats", response_model=RateLimitStatsResponse)
def rate_limit_stats(request: Request) -> RateLimitStatsResponse:
    """Return per-policy configuration and store metrics.

    Keys themselves are never exposed, only counts.
    """

    registry: RateLimiterRegistry = request.app.state.rate_limiters
    return RateLimitStatsResponse(enabled=registry.enabled, policies=registry.stats())
