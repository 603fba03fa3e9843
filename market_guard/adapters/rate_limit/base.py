"""Rate limiter interfaces.

The API should depend on this abstraction (not the concrete implementation)
so throttling can move to a shared store when running several instances.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single check-and-record call.

    Attributes:
        allowed: Whether the request was admitted (and recorded).
        limit: Max admitted requests per rolling window.
        remaining: Requests still available in the current window.
        retry_after_seconds: Whole seconds until the oldest retained event
            leaves the window. Only set when the request was rejected.
    """

    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int | None = None


class AbstractRateLimiter(ABC):
    """Interface for per-identifier rate limiters."""

    @abstractmethod
    def check_and_record(
        self,
        identifier: str,
        max_requests: int,
        window_ms: int,
    ) -> RateLimitDecision:
        """Decide whether a request from ``identifier`` may proceed now.

        Args:
            identifier: Stable, non-empty caller key (user id, wallet, IP).
            max_requests: Admitted requests allowed per window (>= 1).
            window_ms: Rolling window length in milliseconds (> 0).

        Returns:
            RateLimitDecision describing the outcome.

        Raises:
            InvalidArgumentAppError: If any argument is malformed.
        """
        raise NotImplementedError

    @abstractmethod
    def sweep(self, now_ms: float | None = None) -> int:
        """Drop idle identifier records.

        Returns:
            Number of records removed.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self, identifier: str) -> bool:
        """Forget all recorded events for one identifier."""
        raise NotImplementedError

    @abstractmethod
    def tracked_identifiers(self) -> int:
        """Return how many identifiers currently hold a record."""
        raise NotImplementedError
