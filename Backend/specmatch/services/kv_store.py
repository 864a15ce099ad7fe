import abc
import fnmatch
import json
import logging
import time
from functools import lru_cache
from typing import Any, Callable, Optional

import redis.asyncio as aioredis

from specmatch.core.config import settings

logger = logging.getLogger(__name__)


class KVStore(abc.ABC):
    """
    Abstract key-value store over opaque string keys (Redis, in-memory, ...).
    Values are JSON-serializable objects; they are encoded on write and
    decoded on read, so callers always get a fresh copy.
    """

    @abc.abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the decoded value, or None if the key is missing or expired."""

    @abc.abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store *value*, optionally expiring after *ttl* seconds."""

    @abc.abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys; returns how many existed."""

    @abc.abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    @abc.abstractmethod
    async def keys(self, pattern: str) -> list[str]:
        """Glob-style pattern scan (``job:*:searchableData``)."""

    @abc.abstractmethod
    async def expire(self, key: str, ttl: int) -> bool:
        pass

    async def close(self) -> None:
        """Release connections. No-op by default."""


class RedisKVStore(KVStore):
    """
    Stores values in Redis as JSON strings.
    Pattern scans use SCAN rather than KEYS so large keyspaces don't block the server.
    """
    def __init__(self, url: str):
        self.url = url
        self.client = aioredis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> Optional[Any]:
        raw = await self.client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        await self.client.set(key, json.dumps(value), ex=ttl)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self.client.delete(*keys)

    async def exists(self, key: str) -> bool:
        return bool(await self.client.exists(key))

    async def keys(self, pattern: str) -> list[str]:
        return [key async for key in self.client.scan_iter(match=pattern)]

    async def expire(self, key: str, ttl: int) -> bool:
        return bool(await self.client.expire(key, ttl))

    async def close(self) -> None:
        await self.client.aclose()


class MemoryKVStore(KVStore):
    """
    Process-local store with TTL support.
    Suitable for tests and single-process development (Celery in eager mode).
    """
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[str, Optional[float]]] = {}

    def _live(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return raw

    async def get(self, key: str) -> Optional[Any]:
        raw = self._live(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        self._data[key] = (json.dumps(value), expires_at)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                del self._data[key]
                removed += 1
        return removed

    async def exists(self, key: str) -> bool:
        return self._live(key) is not None

    async def keys(self, pattern: str) -> list[str]:
        return [key for key in list(self._data) if fnmatch.fnmatchcase(key, pattern) and self._live(key) is not None]

    async def expire(self, key: str, ttl: int) -> bool:
        raw = self._live(key)
        if raw is None:
            return False
        self._data[key] = (raw, self._clock() + ttl)
        return True


# ─── Factory ─────────────────────────────────────────────────────────────────

@lru_cache(maxsize=1)
def _shared_memory_store() -> MemoryKVStore:
    return MemoryKVStore()


def create_kv_store() -> KVStore:
    """
    Build a store for the current event loop.
    Redis clients are loop-bound, so each Celery task run gets its own; the
    memory backend is shared process-wide or nothing would be visible across runs.
    """
    if settings.KV_BACKEND.lower() == "memory":
        return _shared_memory_store()
    return RedisKVStore(settings.REDIS_URL)


@lru_cache(maxsize=1)
def get_kv_store() -> KVStore:
    """Process-wide store for the API event loop."""
    store = create_kv_store()
    logger.info(f"KV store backend: {type(store).__name__}")
    return store
