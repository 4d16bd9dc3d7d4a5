"""Token bucket limiting outbound request rate.

Bucket size is 1 and tokens refill at `rate` per second, so bursts are
spread out to the configured rate. Callers wait for a token; requests
are delayed, never dropped.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

from dbxclient.config.settings import DEFAULT_RATE_LIMIT_PER_SECOND


class TokenBucket:
    """Async token bucket; `acquire` waits until a token is available."""

    def __init__(
        self,
        rate: float = DEFAULT_RATE_LIMIT_PER_SECOND,
        capacity: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = rate
        self.capacity = capacity
        self._clock = clock
        self._sleep = sleep
        self._tokens = capacity
        self._updated_at = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated_at)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._updated_at = now

    async def acquire(self) -> None:
        """Wait until a token is available and take it.

        Waiters queue on the lock, so tokens go out roughly in arrival order.
        """
        async with self._lock:
            self._refill()
            if self._tokens < 1:
                await self._sleep((1 - self._tokens) / self.rate)
                self._refill()
            # clock granularity can leave the bucket a hair under one token
            self._tokens = max(0.0, self._tokens - 1)
