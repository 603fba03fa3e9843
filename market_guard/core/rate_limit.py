"""Rate limiting dependencies for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- One process-wide limiter, built once and shared by every route.
- Per-route policy: each route names its tier via ``enforce_rate_limit``.
- Accurate feedback: the 429 message and ``Retry-After`` come from the
  limiter's decision, never from a fixed string.

Identifier strategy:
- Authenticated callers are throttled by user id.
- Anonymous callers fall back to the client IP (peer address unless trusted
  proxy hops are configured).

Usage:
    Handlers that perform a throttled action (ticket purchase, market
    creation, AI beautify) declare the tier on the route:

        @router.post(
            "/tickets",
            dependencies=[Depends(enforce_rate_limit("purchase"))],
        )

    Handlers deployed outside this service call
    ``POST /v1/rate-limit/{policy}/consume`` instead, which goes through the
    same ``apply_rate_limit`` path.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated, Callable

from fastapi import Depends, HTTPException, Request, status

from market_guard.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision
from market_guard.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from market_guard.core.audit import log_audit_event
from market_guard.core.auth import Principal, get_optional_principal
from market_guard.core.config import settings
from market_guard.core.logging import hash_identifier
from market_guard.services.throttle_service import ThrottleService

logger = logging.getLogger(__name__)


_limiter: AbstractRateLimiter | None = None


def get_rate_limiter() -> AbstractRateLimiter:
    """Return the process-wide rate limiter, creating it on first use.

    Returns:
        AbstractRateLimiter: Shared limiter instance.
    """

    global _limiter

    if _limiter is None:
        _limiter = InMemorySlidingWindowRateLimiter(
            sweep_probability=settings.rate_limit.sweep_probability,
        )
    return _limiter


def reset_rate_limiter() -> None:
    """Discard the shared limiter so the next call starts from scratch."""

    global _limiter
    _limiter = None


def get_throttle_service() -> ThrottleService:
    return ThrottleService(get_rate_limiter(), settings.rate_limit.policies)


def get_client_ip(request: Request) -> str:
    """Resolve the caller IP used to key anonymous callers.

    By default only the socket peer address is used. When
    ``RATE_LIMIT_TRUSTED_PROXY_HOPS`` is N > 0, the N-th entry from the right
    of X-Forwarded-For is taken: the address seen by the outermost trusted
    proxy. Entries left of it are client-supplied and never used.
    """

    peer = request.client.host if request.client else "unknown"
    hops = settings.rate_limit.trusted_proxy_hops
    if hops <= 0:
        return peer

    forwarded_for = request.headers.get("x-forwarded-for")
    if not forwarded_for:
        return peer

    entries = [entry.strip() for entry in forwarded_for.split(",")]
    if len(entries) < hops or not entries[-hops]:
        return peer
    return entries[-hops]


def build_rate_limit_identifier(request: Request, principal: Principal | None) -> str:
    if principal is not None:
        return f"user:{principal.user_id}"
    return f"ip:{getattr(request.state, 'client_ip', None) or get_client_ip(request)}"


def throttle_message(retry_after_seconds: int) -> str:
    return f"Too many requests. Please wait {retry_after_seconds} seconds before trying again."


def rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
    }
    if decision.retry_after_seconds is not None:
        headers["Retry-After"] = str(decision.retry_after_seconds)
    return headers


def apply_rate_limit(
    throttle: ThrottleService,
    policy_name: str,
    identifier: str,
    *,
    user_id: str | None = None,
) -> RateLimitDecision:
    """Consume one unit for ``identifier`` or raise HTTP 429.

    Args:
        throttle: Service holding the limiter and named policies.
        policy_name: Tier to apply.
        identifier: Caller key (``user:<id>`` or ``ip:<addr>``).
        user_id: Principal id for audit records, when authenticated.

    Returns:
        RateLimitDecision for an admitted request.

    Raises:
        InvalidArgumentAppError: If the policy is unknown.
        HTTPException: 429 Too Many Requests when the caller is throttled.
    """

    decision = throttle.check(policy_name, identifier)
    policy = throttle.get_policy(policy_name)
    log_fields = {
        "policy": policy_name,
        "identifier_hash": hash_identifier(identifier),
        "limit": decision.limit,
        "remaining": decision.remaining,
        "window_ms": policy.window_ms,
    }

    if decision.allowed:
        logger.info("rate_limit.allowed", extra=log_fields)
        return decision

    retry_after = decision.retry_after_seconds or 0
    logger.warning("rate_limit.exceeded", extra={**log_fields, "retry_after_s": retry_after})
    log_audit_event(
        "rate_limit.exceeded",
        identifier=identifier,
        user_id=user_id,
        success=False,
        details={"policy": policy_name, "retry_after_s": retry_after},
    )

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=throttle_message(retry_after),
        headers=rate_limit_headers(decision) if settings.rate_limit.include_headers else None,
    )


def enforce_rate_limit(policy_name: str) -> Callable[..., object]:
    """Build a FastAPI dependency throttling the caller under ``policy_name``.

    Usage:
        @router.post("/tickets", dependencies=[Depends(enforce_rate_limit("purchase"))])

    The dependency is a no-op when rate limiting is disabled in settings.
    """

    async def dependency(
        request: Request,
        principal: Annotated[Principal | None, Depends(get_optional_principal)],
    ) -> RateLimitDecision | None:
        if not settings.rate_limit.enabled:
            return None

        return apply_rate_limit(
            get_throttle_service(),
            policy_name,
            build_rate_limit_identifier(request, principal),
            user_id=principal.user_id if principal else None,
        )

    return dependency


async def run_periodic_sweep(limiter: AbstractRateLimiter, interval_seconds: float) -> None:
    """Sweep idle identifiers forever; cancel the task to stop it."""

    while True:
        await asyncio.sleep(interval_seconds)
        try:
            limiter.sweep()
        except Exception:
            logger.exception("rate_limit.sweep_failed")
