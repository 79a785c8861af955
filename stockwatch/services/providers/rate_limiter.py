"""
Per-retailer request limiting.

Each provider owns one limiter combining a token bucket (requests/second),
an optional rolling 24h quota and a cap on in-flight requests. Callers that
cannot get a token within ``max_wait_seconds`` get ``RateLimitedError``
instead of queueing indefinitely.
"""

import asyncio
import logging
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

from stockwatch.core.exceptions import RateLimitedError

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class RateLimiter:
    def __init__(
        self,
        requests_per_second: float,
        requests_per_day: Optional[int] = None,
        max_concurrent: int = 5,
        max_wait_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")

        self.requests_per_second = requests_per_second
        self.requests_per_day = requests_per_day
        self.max_wait_seconds = max_wait_seconds

        self._clock = clock
        self._sleep = sleep
        self._capacity = max(1.0, float(requests_per_second))
        self._tokens = self._capacity
        self._updated_at = clock()
        self._daily_calls: deque = deque()
        self._lock = asyncio.Lock()
        self._in_flight = asyncio.Semaphore(max_concurrent)

    def _refill(self, now: float) -> None:
        elapsed = now - self._updated_at
        if elapsed > 0:
            self._tokens = min(self._capacity, self._tokens + elapsed * self.requests_per_second)
            self._updated_at = now

    def _check_daily_quota(self, now: float) -> None:
        if self.requests_per_day is None:
            return
        while self._daily_calls and now - self._daily_calls[0] >= SECONDS_PER_DAY:
            self._daily_calls.popleft()
        if len(self._daily_calls) >= self.requests_per_day:
            raise RateLimitedError(
                f"Daily request quota of {self.requests_per_day} exhausted"
            )

    async def acquire(self) -> None:
        """Take one token, waiting at most ``max_wait_seconds`` for it."""
        deadline = self._clock() + self.max_wait_seconds
        while True:
            async with self._lock:
                now = self._clock()
                self._refill(now)
                self._check_daily_quota(now)
                if self._tokens >= 1:
                    self._tokens -= 1
                    if self.requests_per_day is not None:
                        self._daily_calls.append(now)
                    return
                wait = (1 - self._tokens) / self.requests_per_second

            if now + wait > deadline:
                raise RateLimitedError(
                    f"Rate limit of {self.requests_per_second}/s exceeded; "
                    f"no capacity within {self.max_wait_seconds}s"
                )
            logger.debug(f"Rate limiter waiting {wait:.3f}s for a token")
            await self._sleep(wait)

    @asynccontextmanager
    async def slot(self):
        """Hold an in-flight slot and one token for the duration of a request."""
        async with self._in_flight:
            await self.acquire()
            yield
