"""Injectable rate limiters for generation calls."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class RateLimiter(ABC):
    """Gate awaited before each generation call, keyed by caller (agent role)."""

    @abstractmethod
    async def acquire(self, key: str) -> None: ...


class NoopRateLimiter(RateLimiter):
    async def acquire(self, key: str) -> None:
        return None


class SlidingWindowRateLimiter(RateLimiter):
    """At most ``max_calls`` acquisitions per key in any ``period_sec`` window."""

    def __init__(
        self,
        max_calls: int,
        period_sec: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        self._max_calls = max_calls
        self._period = period_sec
        self._clock = clock
        self._sleep = sleep
        self._calls: dict[str, deque[float]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def acquire(self, key: str) -> None:
        async with self._locks.setdefault(key, asyncio.Lock()):
            window = self._calls.setdefault(key, deque())
            while True:
                now = self._clock()
                while window and now - window[0] >= self._period:
                    window.popleft()
                if len(window) < self._max_calls:
                    window.append(now)
                    return
                wait = self._period - (now - window[0])
                logger.debug("Rate limit reached for %s, waiting %.2fs", key, wait)
                await self._sleep(wait)


def build_rate_limiter(calls_per_minute: int) -> RateLimiter:
    if calls_per_minute <= 0:
        return NoopRateLimiter()
    return SlidingWindowRateLimiter(calls_per_minute, 60.0)
