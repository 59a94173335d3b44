from __future__ import annotations

from fastapi import APIRouter

from ratewindow.schemas.rate_limit import MessageResponse

router = APIRouter(tags=["Demo"])


@router.get("/", response_model=MessageResponse)
def hello() -> MessageResponse:
    """Demo endpoint guarded by the global and per-route policies."""

    return MessageResponse(message="Hello World!")
