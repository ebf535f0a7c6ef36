"""
Rate limiting for outbound geocoding requests.

All limiters here are asyncio-based: they suspend the calling worker
task rather than blocking the event loop.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional

from .base import RateLimiter


class MinIntervalRateLimiter(RateLimiter):
    """
    Fixed minimum spacing between acquisitions.

    The check, the wait and the timestamp update all happen while
    holding one lock, so two workers can never pass on the same stale
    timestamp.
    """

    def __init__(self, interval_s: float, clock: Optional[Callable[[], float]] = None):
        """
        Initialize the limiter.

        Args:
            interval_s: Minimum seconds between two acquisitions
            clock: Monotonic clock, overridable for tests
        """
        if interval_s < 0:
            raise ValueError("interval_s must be >= 0")

        self.interval_s = float(interval_s)
        self.clock = clock or time.monotonic
        self.last_acquired: Optional[float] = None
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    @classmethod
    def from_ms(cls, rate_limit_ms: int) -> "MinIntervalRateLimiter":
        return cls(rate_limit_ms / 1000.0)

    def _get_lock(self) -> asyncio.Lock:
        # A lock is bound to one event loop; the timestamp survives across loops
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def acquire(self) -> None:
        async with self._get_lock():
            if self.last_acquired is not None:
                # the loop may wake a timer slightly early, so re-check
                delay_needed = self.last_acquired + self.interval_s - self.clock()
                while delay_needed > 0:
                    await asyncio.sleep(delay_needed)
                    delay_needed = self.last_acquired + self.interval_s - self.clock()
            self.last_acquired = self.clock()


class NoOpRateLimiter(RateLimiter):
    """
    Rate limiter that does nothing (for testing/development).

    Useful when you want to disable rate limiting without changing code.
    """

    async def acquire(self) -> None:
        """Do nothing."""
        pass
