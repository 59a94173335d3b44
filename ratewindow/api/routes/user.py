from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ratewindow.core.logging import hash_key
from ratewindow.core.rate_limit import USER_POLICY, rate_limit_dependency, user_or_ip_key
from ratewindow.schemas.rate_limit import UserIdentityResponse

router = APIRouter(
    prefix="/user",
    tags=["User"],
    dependencies=[Depends(rate_limit_dependency(USER_POLICY))],
)


@router.get("/me", response_model=UserIdentityResponse)
def who_am_i(request: Request) -> UserIdentityResponse:
    """Report how the per-user policy keyed this request.

    Callers presenting ``X-API-Key`` are limited per key; anonymous callers
    fall back to their client address.
    """

    key = user_or_ip_key(request)
    key_type = key.split(":", 1)[0]
    return UserIdentityResponse(key_type=key_type, key_hash=hash_key(key))
