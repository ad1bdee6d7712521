"""Key-value backends for the market cache.

``RedisStore`` wraps ``redis.asyncio``; ``MemoryStore`` is the in-process
stand-in used when no Redis URL is configured.  Both store strings with an
optional TTL in seconds.
"""

import logging
import time
from typing import Callable, Optional, Protocol, runtime_checkable

import redis.asyncio as aioredis

logger = logging.getLogger("btcdash.cache")


@runtime_checkable
class CacheStore(Protocol):
    """Interface shared by every cache backend."""

    name: str

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def close(self) -> None:
        ...


class MemoryStore:
    """Dict-backed store with per-key expiry.

    Args:
        clock: Monotonic time source, injectable for tests.
    """

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def close(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class RedisStore:
    """``redis.asyncio`` client with string responses."""

    name = "redis"

    def __init__(self, url: str) -> None:
        self._client = aioredis.from_url(url, decode_responses=True)

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(key)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        if ttl:
            await self._client.set(key, value, ex=ttl)
        else:
            await self._client.set(key, value)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def close(self) -> None:
        await self._client.aclose()


def create_store(redis_url: Optional[str]) -> CacheStore:
    """Return a Redis store when *redis_url* is set, otherwise in-memory.

    The Redis connection is opened lazily, so a bad URL surfaces as logged
    cache misses rather than a startup failure.
    """
    if redis_url:
        logger.info("Using Redis cache backend")
        return RedisStore(redis_url)
    logger.warning("No REDIS_URL/KV_URL configured, using in-memory cache")
    return MemoryStore()
