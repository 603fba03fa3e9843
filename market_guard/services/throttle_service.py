"""Policy-aware throttling on top of a rate limiter adapter.

Each endpoint names a policy ("purchase", "creation", ...) instead of copying
limit literals. Identifiers are namespaced by policy so that tiers with
different windows never share a bucket.
"""

from __future__ import annotations

import logging
from typing import Mapping

from market_guard.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision
from market_guard.core.config import RateLimitPolicy
from market_guard.core.errors import InvalidArgumentAppError

logger = logging.getLogger(__name__)


def policy_scoped_identifier(policy_name: str, identifier: str) -> str:
    return f"{policy_name}:{identifier}"


class ThrottleService:
    """Resolve named policies and apply them through a limiter."""

    def __init__(
        self,
        limiter: AbstractRateLimiter,
        policies: Mapping[str, RateLimitPolicy],
    ) -> None:
        self._limiter = limiter
        self._policies = dict(policies)

    @property
    def limiter(self) -> AbstractRateLimiter:
        return self._limiter

    @property
    def policies(self) -> dict[str, RateLimitPolicy]:
        return dict(self._policies)

    def get_policy(self, policy_name: str) -> RateLimitPolicy:
        """Look up a policy by name.

        Raises:
            InvalidArgumentAppError: If no such policy is configured.
        """
        policy = self._policies.get(policy_name)
        if policy is None:
            raise InvalidArgumentAppError(
                code="unknown_rate_limit_policy",
                message=f"Unknown rate limit policy: {policy_name}",
                details={
                    "policy": policy_name,
                    "available_policies": sorted(self._policies),
                },
            )
        return policy

    def check(self, policy_name: str, identifier: str) -> RateLimitDecision:
        """Consume one request from ``identifier``'s budget under a policy."""
        policy = self.get_policy(policy_name)
        if not identifier:
            raise InvalidArgumentAppError(
                code="invalid_argument",
                message="identifier must be a non-empty string",
                details={"argument": "identifier"},
            )
        return self._limiter.check_and_record(
            policy_scoped_identifier(policy_name, identifier),
            policy.max_requests,
            policy.window_ms,
        )

    def reset(self, policy_name: str, identifier: str) -> bool:
        self.get_policy(policy_name)
        return self._limiter.reset(policy_scoped_identifier(policy_name, identifier))

    def sweep(self) -> int:
        removed = self._limiter.sweep()
        logger.info(
            "rate_limit.sweep_requested",
            extra={"removed": removed, "tracked": self._limiter.tracked_identifiers()},
        )
        return removed
