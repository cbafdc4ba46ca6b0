"""Tests for the Redis caching helpers (no Redis server needed)."""

import pytest
import redis.asyncio as redis

from firmbook.config import settings
from firmbook.utils import cache
from firmbook.utils.cache import cache_key, cached, invalidate_cache


class FakeRedis:
    """Just enough of the redis.asyncio client for the cache helpers."""

    def __init__(self):
        self.data: dict[str, str] = {}

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value

    async def scan_iter(self, match):
        prefix = match.rstrip("*")
        for key in list(self.data):
            if key.startswith(prefix):
                yield key

    async def delete(self, *keys):
        for key in keys:
            self.data.pop(key, None)


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()

    async def get_fake():
        return fake

    monkeypatch.setattr(settings, "cache_enabled", True)
    monkeypatch.setattr(cache, "get_redis", get_fake)
    return fake


@pytest.mark.cache
@pytest.mark.asyncio
class TestCacheUtility:

    async def test_cache_key_generation(self):
        assert cache_key(collection="firms") == cache_key(collection="firms")
        assert cache_key(collection="firms") != cache_key(collection="taxRates")
        assert cache_key() == "default"

    async def test_cached_decorator(self, fake_redis):
        calls = 0

        @cached(ttl=10, prefix="test")
        async def expensive(store, *, collection: str):
            nonlocal calls
            calls += 1
            return [{"id": "f1", "collection": collection}]

        assert await expensive(object(), collection="firms") == [{"id": "f1", "collection": "firms"}]
        assert await expensive(object(), collection="firms") == [{"id": "f1", "collection": "firms"}]
        assert calls == 1

        await expensive(object(), collection="taxRates")
        assert calls == 2

    async def test_invalidation(self, fake_redis):
        fake_redis.data.update({"masters:a": "1", "masters:b": "2", "other:c": "3"})

        await invalidate_cache("masters:*")

        assert fake_redis.data == {"other:c": "3"}

    async def test_disabled_cache_bypasses_redis(self, monkeypatch):
        async def no_redis():
            raise AssertionError("Redis should not be touched")

        monkeypatch.setattr(settings, "cache_enabled", False)
        monkeypatch.setattr(cache, "get_redis", no_redis)

        @cached(prefix="test")
        async def value():
            return 42

        assert await value() == 42
        await invalidate_cache("test:*")

    async def test_redis_outage_falls_back(self, monkeypatch):
        async def down():
            raise redis.ConnectionError("connection refused")

        monkeypatch.setattr(settings, "cache_enabled", True)
        monkeypatch.setattr(cache, "get_redis", down)

        @cached(prefix="test")
        async def value():
            return {"ok": True}

        assert await value() == {"ok": True}
        await invalidate_cache("test:*")

    async def test_master_create_invalidates_reference_lists(self, fake_redis, store):
        from firmbook.schemas.documents import Firm
        from firmbook.schemas.masters import FirmCreate
        from firmbook.services.masters import create_reference, list_reference

        before = await list_reference(store, Firm)
        assert any(k.startswith("masters:") for k in fake_redis.data)

        await create_reference(store, Firm, FirmCreate(name="Iyer Tax Advisors"))

        after = await list_reference(store, Firm)
        assert len(after) == len(before) + 1
