"""Per-provider minimum-interval throttling."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class MinIntervalLimiter:
    """Guarantees at least ``min_interval`` seconds between call slots.

    Concurrent callers are serialized by a lock and the "last call" slot is
    claimed while the lock is held, so two callers never share a slot. The
    limiter never fails; it only delays.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.min_interval = max(min_interval, 0.0)
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_call: float | None = None

    async def wait(self) -> float:
        """Block until a slot is free. Returns the seconds spent waiting."""
        async with self._lock:
            waited = 0.0
            if self._last_call is not None:
                elapsed = self._clock() - self._last_call
                if elapsed < self.min_interval:
                    waited = self.min_interval - elapsed
                    logger.debug("Throttling for %.2fs", waited)
                    await self._sleep(waited)
            self._last_call = self._clock()
            return waited


class RateLimiterRegistry:
    """Process-wide map of provider name to its limiter."""

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._limiters: dict[str, MinIntervalLimiter] = {}

    def get(self, provider: str, min_interval: float) -> MinIntervalLimiter:
        """Limiter for ``provider``; the interval of the first request wins."""
        limiter = self._limiters.get(provider)
        if limiter is None:
            limiter = MinIntervalLimiter(min_interval, clock=self._clock, sleep=self._sleep)
            self._limiters[provider] = limiter
        return limiter

    def __contains__(self, provider: object) -> bool:
        return provider in self._limiters
