"""Key/value storage backends for room and player records.

Two strategies sit behind the KeyValueStore protocol: an in-process dict
with per-key expiry for local development and single-process deployments,
and Redis for anything that must outlive the process. The backend is
chosen once at startup from configuration (see create_store).

Values are opaque strings; callers own the encoding.
"""

from __future__ import annotations

import time
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

import structlog
from redis import asyncio as aioredis
from redis.exceptions import RedisError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = structlog.get_logger()


class StoreUnavailableError(Exception):
    """The backing store could not complete a read or write."""


class StoreBackend(StrEnum):
    MEMORY = "memory"
    REDIS = "redis"


class KeyValueStore(Protocol):
    """Protocol for asynchronous key/value storage with best-effort expiry."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def keys(self, prefix: str) -> list[str]: ...

    async def expire(self, key: str, ttl_seconds: int) -> None: ...

    async def close(self) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed store. Expired keys are dropped lazily on access."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._values: dict[str, tuple[str, float | None]] = {}  # key -> (value, expires_at)

    def _live(self, key: str) -> str | None:
        entry = self._values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._values[key]
            return None
        return value

    def _expiry(self, ttl_seconds: int | None) -> float | None:
        return self._clock() + ttl_seconds if ttl_seconds is not None else None

    async def get(self, key: str) -> str | None:
        return self._live(key)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        self._values[key] = (value, self._expiry(ttl_seconds))

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)

    async def keys(self, prefix: str) -> list[str]:
        return [key for key in list(self._values) if key.startswith(prefix) and self._live(key) is not None]

    async def expire(self, key: str, ttl_seconds: int) -> None:
        value = self._live(key)
        if value is not None:
            self._values[key] = (value, self._expiry(ttl_seconds))

    async def close(self) -> None:
        self._values.clear()


class RedisKeyValueStore:
    """Redis-backed store. Every client failure surfaces as StoreUnavailableError."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisKeyValueStore:
        return cls(aioredis.Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"get {key!r} failed: {e}") from e

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"set {key!r} failed: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"delete {key!r} failed: {e}") from e

    async def keys(self, prefix: str) -> list[str]:
        try:
            return [key async for key in self._client.scan_iter(match=f"{prefix}*")]
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"scan {prefix!r} failed: {e}") from e

    async def expire(self, key: str, ttl_seconds: int) -> None:
        try:
            await self._client.expire(key, ttl_seconds)
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"expire {key!r} failed: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()


def create_store(backend: StoreBackend, redis_url: str | None = None) -> KeyValueStore:
    """Build the configured storage backend."""
    if backend == StoreBackend.REDIS:
        if not redis_url:
            raise ValueError("redis_url is required for the redis store backend")
        logger.info("using redis store")
        return RedisKeyValueStore.from_url(redis_url)
    logger.info("using in-memory store")
    return InMemoryKeyValueStore()
