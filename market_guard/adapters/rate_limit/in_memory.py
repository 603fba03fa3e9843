"""In-memory sliding-window rate limiter.

Notes:
- Per-process only: counters reset on restart and are not shared between
  workers or instances.
- Thread-safe: the registry lock only guards lookup/insert/delete, while each
  identifier's prune-then-append runs under that identifier's own lock.
- Idle records are dropped by ``sweep``, triggered opportunistically on a
  small fraction of calls and/or by a periodic task.
"""

from __future__ import annotations

import logging
import math
import random
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable

from market_guard.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision
from market_guard.core.errors import InvalidArgumentAppError

logger = logging.getLogger(__name__)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass(eq=False)
class _WindowRecord:
    timestamps: deque[float] = field(default_factory=deque)
    window_ms: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)
    dead: bool = False

    def prune(self, now: float, window_ms: int) -> None:
        while self.timestamps and now - self.timestamps[0] >= window_ms:
            self.timestamps.popleft()

    def is_idle(self, now: float) -> bool:
        return not any(now - ts < self.window_ms for ts in self.timestamps)


def _validate_positive_int(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidArgumentAppError(
            code="invalid_argument",
            message=f"{name} must be a positive integer",
            details={"argument": name, "actual_value": value},
        )


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter keeping a rolling log of admitted request timestamps.

    A request is admitted if and only if fewer than ``max_requests`` admitted
    events remain inside the trailing ``window_ms`` once stale events are
    discarded. Every call site supplies its own policy, so a single instance
    can serve all endpoints as long as identifiers are namespaced per policy.
    """

    def __init__(
        self,
        *,
        sweep_probability: float = 0.01,
        clock: Callable[[], float] = _monotonic_ms,
        random_source: Callable[[], float] = random.random,
    ) -> None:
        """Initialize the in-memory limiter.

        Args:
            sweep_probability: Chance (0..1) that a call triggers ``sweep``.
            clock: Time source in milliseconds. Only differences between
                readings matter, so a monotonic source is the default.
            random_source: Returns a float in [0, 1) for the sweep trigger.

        Raises:
            ValueError: If sweep_probability is outside [0, 1].
        """
        if not 0.0 <= sweep_probability <= 1.0:
            raise ValueError("sweep_probability must be between 0 and 1")

        self._sweep_probability = sweep_probability
        self._clock = clock
        self._random = random_source
        self._registry_lock = threading.Lock()
        self._records: dict[str, _WindowRecord] = {}

    def _acquire_record(self, identifier: str) -> _WindowRecord:
        """Return the live record for identifier with its lock held."""
        while True:
            with self._registry_lock:
                record = self._records.get(identifier)
                if record is None:
                    record = _WindowRecord()
                    self._records[identifier] = record

            record.lock.acquire()
            if not record.dead:
                return record
            # Removed by a concurrent sweep; look it up again.
            record.lock.release()

    def check_and_record(
        self,
        identifier: str,
        max_requests: int,
        window_ms: int,
    ) -> RateLimitDecision:
        """Check the identifier's window and record the request if admitted.

        Stale timestamps are pruned on both admission and rejection, so a
        caller who stops and waits becomes eligible again without a sweep.

        Args:
            identifier: Unique caller key.
            max_requests: Max admitted requests per window.
            window_ms: Window length in milliseconds.

        Returns:
            RateLimitDecision with allowance decision and metadata.

        Raises:
            InvalidArgumentAppError: If identifier is empty or the policy
                values are not positive integers.
        """
        if not isinstance(identifier, str) or not identifier:
            raise InvalidArgumentAppError(
                code="invalid_argument",
                message="identifier must be a non-empty string",
                details={"argument": "identifier"},
            )
        _validate_positive_int("max_requests", max_requests)
        _validate_positive_int("window_ms", window_ms)

        record = self._acquire_record(identifier)
        try:
            now = self._clock()
            if record.timestamps and now < record.timestamps[-1]:
                # Keep the log ordered if an injected clock steps backwards.
                now = record.timestamps[-1]
            record.prune(now, window_ms)
            # Sweep must respect the widest window this identifier was used with.
            record.window_ms = max(record.window_ms, window_ms)

            if len(record.timestamps) < max_requests:
                record.timestamps.append(now)
                decision = RateLimitDecision(
                    allowed=True,
                    limit=max_requests,
                    remaining=max(0, max_requests - len(record.timestamps)),
                )
            else:
                oldest = record.timestamps[0]
                retry_after = max(0, math.ceil((oldest + window_ms - now) / 1000))
                decision = RateLimitDecision(
                    allowed=False,
                    limit=max_requests,
                    remaining=0,
                    retry_after_seconds=retry_after,
                )
        finally:
            record.lock.release()

        if self._sweep_probability and self._random() < self._sweep_probability:
            self.sweep()

        return decision

    def sweep(self, now_ms: float | None = None) -> int:
        """Remove records whose every timestamp has left its window.

        Records that still hold a live timestamp are left untouched, so a
        sweep never changes the outcome of a later ``check_and_record``.

        Args:
            now_ms: Reference time on the limiter clock (defaults to clock).

        Returns:
            Number of records removed.
        """
        now = self._clock() if now_ms is None else now_ms

        with self._registry_lock:
            snapshot = list(self._records.items())

        removed = 0
        for identifier, record in snapshot:
            with record.lock:
                if record.dead or not record.is_idle(now):
                    continue
                record.dead = True
                with self._registry_lock:
                    if self._records.get(identifier) is record:
                        del self._records[identifier]
                        removed += 1

        if removed:
            logger.debug(
                "rate_limit.sweep",
                extra={"removed": removed, "tracked": self.tracked_identifiers()},
            )
        return removed

    def reset(self, identifier: str) -> bool:
        """Drop the identifier's record, restoring its full quota."""
        with self._registry_lock:
            record = self._records.pop(identifier, None)
        if record is None:
            return False
        with record.lock:
            record.dead = True
        return True

    def tracked_identifiers(self) -> int:
        with self._registry_lock:
            return len(self._records)
