"""Unit tests for the TTL cache."""
import asyncio

import pytest

from mev_shield.cache.ttl_cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    """Test expiry and single-flight computation."""

    def setup_method(self):
        self.clock = FakeClock()
        self.cache = TTLCache(ttl_seconds=300, clock=self.clock, name="test")

    def test_get_before_expiry(self):
        self.cache.set("pool", "profile")
        self.clock.now = 299.9
        assert self.cache.get("pool") == "profile"

    def test_entry_expires(self):
        self.cache.set("pool", "profile")
        self.clock.now = 300
        assert self.cache.get("pool") is None
        assert len(self.cache) == 0

    def test_invalidate_and_clear(self):
        self.cache.set("a", 1)
        self.cache.set("b", 2)
        self.cache.invalidate("a")
        assert self.cache.get("a") is None
        self.cache.clear()
        assert len(self.cache) == 0

    def test_negative_ttl_rejected(self):
        with pytest.raises(ValueError):
            TTLCache(ttl_seconds=-1)

    @pytest.mark.asyncio
    async def test_get_or_compute_caches(self):
        calls = []

        async def compute():
            calls.append(1)
            return "value"

        assert await self.cache.get_or_compute("k", compute) == "value"
        assert await self.cache.get_or_compute("k", compute) == "value"
        assert len(calls) == 1
        assert self.cache.stats["hits"] == 1

    @pytest.mark.asyncio
    async def test_recomputes_after_expiry(self):
        calls = []

        async def compute():
            calls.append(1)
            return len(calls)

        assert await self.cache.get_or_compute("k", compute) == 1
        self.clock.now = 301
        assert await self.cache.get_or_compute("k", compute) == 2

    @pytest.mark.asyncio
    async def test_bypass(self):
        self.cache.set("k", "stale")

        async def compute():
            return "fresh"

        assert await self.cache.get_or_compute("k", compute, bypass=True) == "fresh"
        assert self.cache.get("k") == "fresh"

    @pytest.mark.asyncio
    async def test_concurrent_misses_compute_once(self):
        calls = []

        async def compute():
            calls.append(1)
            await asyncio.sleep(0.01)
            return "value"

        results = await asyncio.gather(*[self.cache.get_or_compute("k", compute) for _ in range(10)])

        assert results == ["value"] * 10
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_failures_not_cached(self):
        async def failing():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await self.cache.get_or_compute("k", failing)
        assert self.cache.get("k") is None

    @pytest.mark.asyncio
    async def test_none_not_cached(self):
        calls = []

        async def compute():
            calls.append(1)
            return None

        await self.cache.get_or_compute("k", compute)
        await self.cache.get_or_compute("k", compute)
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_locks_released_after_compute(self):
        async def compute():
            return "value"

        for i in range(100):
            await self.cache.get_or_compute(f"pool-{i}", compute)

        assert len(self.cache) == 100
        assert self.cache._locks == {}
        assert self.cache._lock_users == {}

    @pytest.mark.asyncio
    async def test_lock_held_while_callers_wait(self):
        started = asyncio.Event()
        release = asyncio.Event()

        async def compute():
            started.set()
            await release.wait()
            return "value"

        tasks = [asyncio.ensure_future(self.cache.get_or_compute("k", compute)) for _ in range(3)]
        await started.wait()
        await asyncio.sleep(0)

        assert "k" in self.cache._locks
        assert self.cache._lock_users["k"] == 3

        release.set()
        assert await asyncio.gather(*tasks) == ["value"] * 3
        assert self.cache._locks == {}

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self):
        async def failing():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await self.cache.get_or_compute("k", failing)
        assert self.cache._locks == {}
