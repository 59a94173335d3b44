"""Pydantic schemas for the demo and rate limit inspection endpoints."""

from __future__ import annotations

from typing import Dict

from pydantic import BaseModel, Field


class MessageResponse(BaseModel):
    """Plain message payload."""

    message: str = Field(..., description="Human-readable message.")


class UserIdentityResponse(BaseModel):
    """How the per-user policy identified the caller."""

    key_type: str = Field(
        ..., description="'user' when an X-API-Key was supplied, otherwise 'ip'."
    )
    key_hash: str = Field(
        ..., description="Short SHA-256 digest of the limiter key (never the raw key)."
    )


class PolicyStats(BaseModel):
    """Configuration and store metrics for one policy."""

    limit: int = Field(..., description="Max requests per window (0 rejects all).")
    window_seconds: float = Field(..., description="Trailing window length in seconds.")
    tracked_keys: int = Field(..., description="Keys currently holding request history.")
    stored_timestamps: int = Field(..., description="Total recorded requests across keys.")
    retention_seconds: float = Field(..., description="Compaction retention threshold.")
    compaction_interval_seconds: float = Field(
        ..., description="Delay between background compaction runs."
    )
    compactor_running: bool = Field(..., description="Whether compaction is scheduled.")
    closed: bool = Field(..., description="Whether the store has been shut down.")


class RateLimitStatsResponse(BaseModel):
    """Per-policy limiter metrics."""

    enabled: bool = Field(..., description="Whether rate limiting is enforced.")
    policies: Dict[str, PolicyStats] = Field(
        default_factory=dict,
        description="Metrics keyed by policy name.",
    )
