"""Tests for dbxclient/transport/ratelimit.py — token bucket."""

import asyncio

import pytest

from dbxclient.transport.ratelimit import TokenBucket


class TestTokenBucket:

    async def test_first_request_not_delayed(self, clock):
        bucket = TokenBucket(rate=15, clock=clock, sleep=clock.sleep)
        await bucket.acquire()
        assert clock.sleeps == []

    async def test_burst_is_delayed_not_dropped(self, clock):
        bucket = TokenBucket(rate=15, clock=clock, sleep=clock.sleep)
        for _ in range(3):
            await bucket.acquire()
        assert clock.sleeps == [pytest.approx(1 / 15), pytest.approx(1 / 15)]

    async def test_rate_converges(self, clock):
        bucket = TokenBucket(rate=15, clock=clock, sleep=clock.sleep)
        start = clock()
        for _ in range(301):
            await bucket.acquire()
        # 300 refills at 15/s
        assert clock() - start == pytest.approx(20.0)

    async def test_idle_time_does_not_grow_burst(self, clock):
        bucket = TokenBucket(rate=10, clock=clock, sleep=clock.sleep)
        await bucket.acquire()
        clock.now += 60
        await bucket.acquire()
        await bucket.acquire()
        assert clock.sleeps == [pytest.approx(0.1)]

    async def test_partial_refill(self, clock):
        bucket = TokenBucket(rate=10, clock=clock, sleep=clock.sleep)
        await bucket.acquire()
        clock.now += 0.04
        await bucket.acquire()
        assert clock.sleeps == [pytest.approx(0.06)]

    async def test_concurrent_callers_all_admitted(self, clock):
        bucket = TokenBucket(rate=5, clock=clock, sleep=clock.sleep)
        await asyncio.gather(*(bucket.acquire() for _ in range(6)))
        assert len(clock.sleeps) == 5
        assert sum(clock.sleeps) == pytest.approx(1.0)

    async def test_cancellation_aborts_wait(self):
        bucket = TokenBucket(rate=0.5)
        await bucket.acquire()
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(bucket.acquire(), timeout=0.05)
        # the lock was released by the cancelled waiter
        assert not bucket._lock.locked()

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            TokenBucket(rate=0)
