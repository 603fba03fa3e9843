"""Pydantic schemas for rate limit responses."""

from __future__ import annotations

from pydantic import BaseModel, Field

from market_guard.adapters.rate_limit.base import RateLimitDecision


class RateLimitDecisionResponse(BaseModel):
    """Outcome of consuming one unit of a caller's budget."""

    policy: str = Field(..., description="Policy the request was checked against.")
    allowed: bool = Field(..., description="Whether the request was admitted.")
    limit: int = Field(..., description="Max admitted requests per window.")
    remaining: int = Field(..., description="Requests left in the current window.")
    retry_after_seconds: int | None = Field(
        default=None,
        description="Seconds until the caller may retry (only when throttled).",
    )

    @classmethod
    def from_decision(cls, policy: str, decision: RateLimitDecision) -> "RateLimitDecisionResponse":
        return cls(
            policy=policy,
            allowed=decision.allowed,
            limit=decision.limit,
            remaining=decision.remaining,
            retry_after_seconds=decision.retry_after_seconds,
        )


class PolicyResponse(BaseModel):
    name: str
    max_requests: int
    window_ms: int


class LimiterStatsResponse(BaseModel):
    tracked_identifiers: int = Field(..., description="Identifiers currently holding a record.")


class SweepResponse(BaseModel):
    removed: int = Field(..., description="Idle identifier records removed by this sweep.")
    tracked_identifiers: int


class ResetResponse(BaseModel):
    reset: bool = Field(..., description="False when the identifier had no record.")
