from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from market_guard.core.auth import Principal, role_required
from market_guard.core.logging import hash_identifier
from market_guard.core.rate_limit import get_throttle_service
from market_guard.schemas.rate_limit import LimiterStatsResponse, ResetResponse, SweepResponse
from market_guard.services.throttle_service import ThrottleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/rate-limit", tags=["Admin"])

AdminPrincipal = Annotated[Principal, Depends(role_required())]
Throttle = Annotated[ThrottleService, Depends(get_throttle_service)]


@router.get("/stats", response_model=LimiterStatsResponse)
def limiter_stats(admin: AdminPrincipal, throttle: Throttle) -> LimiterStatsResponse:
    return LimiterStatsResponse(tracked_identifiers=throttle.limiter.tracked_identifiers())


@router.post("/sweep", response_model=SweepResponse)
def sweep_idle_identifiers(admin: AdminPrincipal, throttle: Throttle) -> SweepResponse:
    """Remove identifier records with no timestamps left in their window."""

    removed = throttle.sweep()
    logger.info("admin.rate_limit_sweep", extra={"user_id": admin.user_id, "removed": removed})
    return SweepResponse(
        removed=removed,
        tracked_identifiers=throttle.limiter.tracked_identifiers(),
    )


@router.delete("/{policy}/identifiers/{identifier}", response_model=ResetResponse)
def reset_identifier(
    policy: str,
    identifier: str,
    admin: AdminPrincipal,
    throttle: Throttle,
) -> ResetResponse:
    """Restore the full quota of one caller under a policy.

    ``identifier`` is the caller key as built by the limiter dependency,
    e.g. ``user:42`` or ``ip:203.0.113.7``.
    """

    was_reset = throttle.reset(policy, identifier)
    logger.info(
        "admin.rate_limit_reset",
        extra={
            "user_id": admin.user_id,
            "policy": policy,
            "identifier_hash": hash_identifier(identifier),
            "reset": was_reset,
        },
    )
    return ResetResponse(reset=was_reset)
