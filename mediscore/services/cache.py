"""Result caching: external key-value gateway plus a bounded in-process layer.

Keys are content hashes of a canonical request payload, so identical inputs
always land on the same entry and concurrent writers overwrite idempotently.
"""

import asyncio
import hashlib
import json
import logging
import time
from collections import OrderedDict

import redis.asyncio as redis_async
from redis.exceptions import RedisError

from mediscore.config import CACHE_KEY_PREFIX, CACHE_TIMEOUT_SECONDS, MEMORY_CACHE_MAX_ENTRIES
from mediscore.errors import CacheWriteFailure, RetrievalUnavailable

logger = logging.getLogger(__name__)


def make_cache_key(namespace: str, payload: dict) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{CACHE_KEY_PREFIX}:{namespace}:{digest}"


def canonical_list(values) -> list[str]:
    """Casefold, strip and sort so list order never changes a key."""
    return sorted(v.strip().casefold() for v in values if v and v.strip())


class CacheGateway:
    async def get(self, key: str) -> bytes | None:  # pragma: no cover - interface
        raise NotImplementedError

    async def set_with_expiry(self, key: str, value: bytes, ttl_seconds: int) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def close(self) -> None:
        return


class MemoryCacheGateway(CacheGateway):
    """Process-local TTL store used when no Redis URL is configured.

    Expired entries are purged on every write. Past ``max_entries`` the oldest
    writes are dropped first.
    """

    def __init__(self, max_entries: int = MEMORY_CACHE_MAX_ENTRIES) -> None:
        self.max_entries = max_entries
        self._entries: dict[str, tuple[float, bytes]] = {}

    async def get(self, key: str) -> bytes | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= time.monotonic():
            self._entries.pop(key, None)
            return None
        return value

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))

    async def set_with_expiry(self, key: str, value: bytes, ttl_seconds: int) -> None:
        now = time.monotonic()
        self._purge_expired(now)
        self._entries.pop(key, None)
        self._entries[key] = (now + ttl_seconds, value)
        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

    def __len__(self) -> int:
        return len(self._entries)


class RedisCacheGateway(CacheGateway):
    def __init__(self, url: str, timeout: float = CACHE_TIMEOUT_SECONDS) -> None:
        self._client = redis_async.Redis.from_url(url)
        self.timeout = timeout

    async def get(self, key: str) -> bytes | None:
        try:
            return await asyncio.wait_for(self._client.get(key), timeout=self.timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise RetrievalUnavailable(f"cache read failed for {key}: {e}") from e

    async def set_with_expiry(self, key: str, value: bytes, ttl_seconds: int) -> None:
        try:
            await asyncio.wait_for(self._client.setex(key, ttl_seconds, value), timeout=self.timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise CacheWriteFailure(f"cache write failed for {key}: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()


class LocalResultCache:
    """Size-bounded LRU with per-entry TTL, layered above the gateway."""

    def __init__(self, max_entries: int = 512) -> None:
        self.max_entries = max_entries
        self._entries: OrderedDict[str, tuple[float, bytes]] = OrderedDict()

    def get(self, key: str) -> bytes | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= time.monotonic():
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        if self.max_entries <= 0:
            return
        self._entries[key] = (time.monotonic() + ttl_seconds, value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted local cache entry %s", evicted)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def build_cache_gateway(redis_url: str) -> CacheGateway:
    if redis_url:
        logger.info("Using Redis cache gateway")
        return RedisCacheGateway(redis_url)
    logger.info("REDIS_URL not set, using in-memory cache gateway")
    return MemoryCacheGateway()
