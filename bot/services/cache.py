from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Protocol

import redis.asyncio as redis
from redis.exceptions import RedisError

from core.config import RedisConfig

LOGGER = logging.getLogger(__name__)

KEY_PREFIX = "ticket-panel:"


class CacheBackend(Protocol):
    async def get(self, key: str) -> str | None: ...
    async def set(self, key: str, value: str, ttl: int | None = None) -> None: ...
    async def delete(self, *keys: str) -> None: ...
    async def close(self) -> None: ...


class MemoryCache(CacheBackend):
    """Process-local cache used when Redis is disabled or unreachable."""

    def __init__(self) -> None:
        # key -> (deadline on the monotonic clock or None, payload)
        self._entries: dict[str, tuple[float | None, str]] = {}
        self._lock = asyncio.Lock()

    def _evict_expired(self, now: float) -> None:
        stale = [key for key, (deadline, _) in self._entries.items() if deadline is not None and deadline <= now]
        for key in stale:
            del self._entries[key]

    async def get(self, key: str) -> str | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            deadline, payload = entry
            if deadline is not None and deadline <= time.monotonic():
                del self._entries[key]
                return None
            return payload

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        now = time.monotonic()
        async with self._lock:
            self._evict_expired(now)
            self._entries[key] = (now + ttl if ttl else None, value)

    async def delete(self, *keys: str) -> None:
        async with self._lock:
            for key in keys:
                self._entries.pop(key, None)

    async def close(self) -> None:
        self._entries.clear()


class RedisCache(CacheBackend):
    def __init__(self, client: redis.Redis, prefix: str = KEY_PREFIX) -> None:
        self._client = client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> str | None:
        return await self._client.get(self._key(key))

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        await self._client.set(self._key(key), value, ex=ttl or None)

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        await self._client.delete(*(self._key(key) for key in keys))

    async def close(self) -> None:
        await self._client.aclose()


async def cache_get_json(cache: CacheBackend, key: str) -> Any:
    raw = await cache.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        LOGGER.warning("Dropping undecodable cache entry %s", key)
        await cache.delete(key)
        return None


async def cache_set_json(cache: CacheBackend, key: str, value: Any, ttl: int | None = None) -> None:
    await cache.set(key, json.dumps(value, ensure_ascii=False, separators=(",", ":")), ttl=ttl)


async def build_cache(config: RedisConfig) -> CacheBackend:
    if not config.enabled:
        return MemoryCache()
    client = redis.from_url(config.url, decode_responses=True)
    try:
        await client.ping()
    except RedisError:
        LOGGER.warning("Redis at %s is unreachable, falling back to the in-memory cache", config.url, exc_info=True)
        await client.aclose()
        return MemoryCache()
    LOGGER.info("Using Redis cache at %s", config.url)
    return RedisCache(client)
