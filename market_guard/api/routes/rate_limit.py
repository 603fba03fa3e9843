from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from market_guard.core.auth import Principal, get_optional_principal
from market_guard.core.rate_limit import (
    apply_rate_limit,
    build_rate_limit_identifier,
    get_throttle_service,
)
from market_guard.schemas.rate_limit import PolicyResponse, RateLimitDecisionResponse
from market_guard.services.throttle_service import ThrottleService

router = APIRouter(prefix="/rate-limit", tags=["Rate limit"])


@router.get("/policies", response_model=list[PolicyResponse])
def list_policies(
    throttle: Annotated[ThrottleService, Depends(get_throttle_service)],
) -> list[PolicyResponse]:
    """List the configured throttling tiers."""

    return [
        PolicyResponse(name=name, max_requests=policy.max_requests, window_ms=policy.window_ms)
        for name, policy in sorted(throttle.policies.items())
    ]


@router.post("/{policy}/consume", response_model=RateLimitDecisionResponse)
def consume(
    policy: str,
    request: Request,
    throttle: Annotated[ThrottleService, Depends(get_throttle_service)],
    principal: Annotated[Principal | None, Depends(get_optional_principal)],
) -> RateLimitDecisionResponse:
    """Consume one unit of the caller's budget under ``policy``.

    Request handlers call this before performing a throttled action (ticket
    purchase, market creation, AI beautify). The caller is identified by the
    bearer token's subject, or by client IP when no token is sent.

    Raises:
        HTTPException: 429 with ``Retry-After`` when the caller is throttled.
        InvalidArgumentAppError: 400 when the policy is unknown.
    """

    decision = apply_rate_limit(
        throttle,
        policy,
        build_rate_limit_identifier(request, principal),
        user_id=principal.user_id if principal else None,
    )
    return RateLimitDecisionResponse.from_decision(policy, decision)
