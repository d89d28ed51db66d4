"""
Cache layer tests: keys, TTLs, invalidation and failure absorption.

Run:
    pytest tests/test_cache.py -v
"""

import asyncio

import pytest

from server.services.cache import CacheLayer, InMemoryCacheBackend

from conftest import FakeClock


class FailingBackend(InMemoryCacheBackend):
    name = "failing"

    async def get(self, key):
        raise ConnectionError("redis down")

    async def setex(self, key, ttl_seconds, value):
        raise ConnectionError("redis down")

    async def keys(self, pattern):
        raise ConnectionError("redis down")


class SlowBackend(InMemoryCacheBackend):
    name = "slow"

    async def get(self, key):
        await asyncio.sleep(1)
        return await super().get(key)

    async def setex(self, key, ttl_seconds, value):
        await asyncio.sleep(1)
        await super().setex(key, ttl_seconds, value)


class GatedBackend(InMemoryCacheBackend):
    """setex blocks until the gate opens."""

    name = "gated"

    def __init__(self):
        super().__init__()
        self.gate = None

    async def setex(self, key, ttl_seconds, value):
        await self.gate.wait()
        await super().setex(key, ttl_seconds, value)


class TestKeys:
    def test_generate_key_is_order_independent(self):
        a = CacheLayer.generate_key("recommendations", "m-1", {"useVector": True, "useAI": False})
        b = CacheLayer.generate_key("recommendations", "m-1", {"useAI": False, "useVector": True})
        assert a == b == "recommendations:m-1:useAI:false|useVector:true"

    def test_generate_key_without_params(self):
        assert CacheLayer.generate_key("class", "c-1") == "class:c-1"

    def test_recommendation_key_whitelists_params(self):
        key = CacheLayer.recommendation_key("m-1", {"useAI": True, "skipCache": True, "foo": "bar"})
        assert key == "recommendations:m-1:useAI:true|useVector:true"

    def test_recommendation_key_fills_defaults(self):
        assert CacheLayer.recommendation_key("m-1") == CacheLayer.recommendation_key(
            "m-1", {"useAI": False, "useVector": True}
        )


class TestReadWrite:
    def test_round_trip(self):
        cache = CacheLayer(InMemoryCacheBackend())
        value = {"recommendations": [{"id": "c-1", "score": 0.75, "tags": ["a", None]}], "cached": False}

        async def go():
            assert await cache.set("k", value, ttl=60)
            return await cache.get("k")

        assert asyncio.run(go()) == value

    def test_ttl_expiry(self):
        clock = FakeClock()
        cache = CacheLayer(InMemoryCacheBackend(clock))

        async def go():
            await cache.set("k", [1, 2], ttl=10)
            clock.advance(9)
            before = await cache.get("k")
            clock.advance(1)
            after = await cache.get("k")
            return before, after

        assert asyncio.run(go()) == ([1, 2], None)

    def test_miss_is_none(self):
        assert asyncio.run(CacheLayer(InMemoryCacheBackend()).get("nope")) is None


class TestInvalidation:
    def test_invalidate_member_scope(self):
        cache = CacheLayer(InMemoryCacheBackend())

        async def go():
            await cache.set(CacheLayer.recommendation_key("m-1", {"useAI": True}), {"x": 1})
            await cache.set(CacheLayer.recommendation_key("m-1", {"useAI": False}), {"x": 2})
            await cache.set(CacheLayer.recommendation_key("m-2"), {"x": 3})
            await cache.remember_categories("m-1", ["YOGA"], window=20)
            removed = await cache.invalidate_member("m-1")
            return (
                removed,
                await cache.get(CacheLayer.recommendation_key("m-1", {"useAI": True})),
                await cache.get(CacheLayer.recommendation_key("m-2")),
                await cache.recent_categories("m-1"),
            )

        removed, gone, other, history = asyncio.run(go())
        assert removed == 2
        assert gone is None
        assert other == {"x": 3}
        assert history == ["YOGA"]

    def test_remember_categories_window(self):
        cache = CacheLayer(InMemoryCacheBackend())

        async def go():
            await cache.remember_categories("m", ["YOGA", "CARDIO"], window=3)
            await cache.remember_categories("m", ["STRENGTH", "PILATES"], window=3)
            return await cache.recent_categories("m")

        assert asyncio.run(go()) == ["STRENGTH", "PILATES", "YOGA"]


class TestFailureAbsorption:
    def test_backend_errors(self, caplog):
        cache = CacheLayer(FailingBackend())

        async def go():
            return (
                await cache.get("k"),
                await cache.set("k", {"a": 1}),
                await cache.delete_by_pattern("recommendations:*"),
            )

        assert asyncio.run(go()) == (None, False, 0)
        assert "GET_FAILED" in caplog.text

    def test_timeouts(self):
        cache = CacheLayer(SlowBackend(), timeout=0.01)

        async def go():
            return await cache.get("k"), await cache.set("k", 1)

        assert asyncio.run(go()) == (None, False)

    def test_write_survives_caller_cancellation(self):
        backend = GatedBackend()
        cache = CacheLayer(backend, timeout=5)

        async def go():
            backend.gate = asyncio.Event()
            task = asyncio.create_task(cache.set("k", {"a": 1}))
            for _ in range(3):
                await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            backend.gate.set()
            for _ in range(5):
                await asyncio.sleep(0.01)
            return await cache.get("k")

        assert asyncio.run(go()) == {"a": 1}
