"""Tests for cache keys, the in-memory gateway, the Redis gateway and the local LRU."""

import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from mediscore.errors import CacheWriteFailure, RetrievalUnavailable
from mediscore.services.cache import (
    LocalResultCache,
    MemoryCacheGateway,
    RedisCacheGateway,
    build_cache_gateway,
    canonical_list,
    make_cache_key,
)


class TestCacheKeys:
    def test_prefix_and_namespace(self):
        key = make_cache_key("interactions", {"drugs": ["aspirin"]})
        assert key.startswith("mediscore:interactions:")
        assert len(key.rsplit(":", 1)[1]) == 64

    def test_dict_order_does_not_matter(self):
        assert make_cache_key("x", {"a": 1, "b": 2}) == make_cache_key("x", {"b": 2, "a": 1})

    def test_canonical_list_order_and_case(self):
        assert canonical_list(["Warfarin", " aspirin ", ""]) == canonical_list(["ASPIRIN", "warfarin"])

    def test_different_payloads_differ(self):
        assert make_cache_key("x", {"drugs": ["a"]}) != make_cache_key("x", {"drugs": ["b"]})

    def test_namespaces_differ(self):
        assert make_cache_key("search", {"q": 1}) != make_cache_key("diagnosis", {"q": 1})


class TestMemoryGateway:
    async def test_set_then_get(self):
        cache = MemoryCacheGateway()
        await cache.set_with_expiry("k", b"v", 60)
        assert await cache.get("k") == b"v"

    async def test_missing_key(self):
        assert await MemoryCacheGateway().get("nope") is None

    async def test_expired_entry(self):
        cache = MemoryCacheGateway()
        await cache.set_with_expiry("k", b"v", 0)
        assert await cache.get("k") is None
        assert len(cache) == 0

    async def test_writes_purge_expired_entries(self):
        cache = MemoryCacheGateway()
        for i in range(1000):
            await cache.set_with_expiry(f"old-{i}", b"v", 0)
        await cache.set_with_expiry("fresh", b"v", 60)
        assert len(cache) == 1
        assert await cache.get("fresh") == b"v"

    async def test_size_bound_drops_oldest(self):
        cache = MemoryCacheGateway(max_entries=2)
        await cache.set_with_expiry("a", b"1", 60)
        await cache.set_with_expiry("b", b"2", 60)
        await cache.set_with_expiry("c", b"3", 60)
        assert len(cache) == 2
        assert await cache.get("a") is None
        assert await cache.get("c") == b"3"

    async def test_rewrite_refreshes_position(self):
        cache = MemoryCacheGateway(max_entries=2)
        await cache.set_with_expiry("a", b"1", 60)
        await cache.set_with_expiry("b", b"2", 60)
        await cache.set_with_expiry("a", b"1", 60)
        await cache.set_with_expiry("c", b"3", 60)
        assert await cache.get("a") == b"1"
        assert await cache.get("b") is None


class _BrokenRedis:
    async def get(self, key):
        raise RedisConnectionError("connection refused")

    async def setex(self, key, ttl, value):
        raise RedisConnectionError("connection refused")


class _SlowRedis:
    async def get(self, key):
        await asyncio.sleep(1)

    async def setex(self, key, ttl, value):
        await asyncio.sleep(1)


class TestRedisGateway:
    def _gateway(self, client, timeout=2.0):
        gateway = RedisCacheGateway("redis://localhost:6379/0", timeout=timeout)
        gateway._client = client
        return gateway

    async def test_read_error_is_retrieval_unavailable(self):
        with pytest.raises(RetrievalUnavailable):
            await self._gateway(_BrokenRedis()).get("k")

    async def test_write_error_is_cache_write_failure(self):
        with pytest.raises(CacheWriteFailure):
            await self._gateway(_BrokenRedis()).set_with_expiry("k", b"v", 10)

    async def test_timeout_is_retrieval_unavailable(self):
        with pytest.raises(RetrievalUnavailable):
            await self._gateway(_SlowRedis(), timeout=0.01).get("k")

    def test_builder_picks_redis_when_url_set(self):
        assert isinstance(build_cache_gateway("redis://localhost:6379/0"), RedisCacheGateway)
        assert isinstance(build_cache_gateway(""), MemoryCacheGateway)


class TestLocalResultCache:
    def test_evicts_least_recently_used(self):
        cache = LocalResultCache(max_entries=2)
        cache.set("a", b"1", 60)
        cache.set("b", b"2", 60)
        assert cache.get("a") == b"1"
        cache.set("c", b"3", 60)
        assert cache.get("b") is None
        assert cache.get("a") == b"1"
        assert cache.get("c") == b"3"
        assert len(cache) == 2

    def test_ttl_expiry(self):
        cache = LocalResultCache()
        cache.set("a", b"1", 0)
        assert cache.get("a") is None

    def test_zero_size_disables(self):
        cache = LocalResultCache(max_entries=0)
        cache.set("a", b"1", 60)
        assert cache.get("a") is None

    def test_clear(self):
        cache = LocalResultCache()
        cache.set("a", b"1", 60)
        cache.clear()
        assert len(cache) == 0
