"""
Read-through cache for analytics aggregates.

Entries live in Redis under "<metric>:<subject id>" and expire by TTL only;
nothing evicts them when forms, events or submissions change. The cache is
best-effort: any backend error is logged and treated as a miss.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar

from pydantic import TypeAdapter

from shared_config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ANY = TypeAdapter(Any)


class CacheBackend(Protocol):
    """The subset of the redis.asyncio client the cache relies on."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> Any: ...


def cache_key(metric: str, subject_id: str) -> str:
    return f"{metric}:{subject_id}"


class AggregateCache:

    def __init__(self, backend: Optional[CacheBackend], ttl_seconds: int = settings.ANALYTICS_CACHE_TTL_SECONDS):
        self.backend = backend
        self.ttl_seconds = ttl_seconds

    async def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Awaitable[T]],
        adapter: TypeAdapter = _ANY,
    ) -> T:
        """
        Return the cached value for `key`, or compute, store and return it.

        `adapter` (de)serializes the value; pass TypeAdapter(list[Model]) etc.
        so a cache hit comes back as the same type a fresh computation has.
        """
        cached = await self._read(key, adapter)
        if cached is not None:
            return cached

        value = await compute_fn()
        await self._write(key, value, adapter)
        return value

    async def _read(self, key: str, adapter: TypeAdapter):
        if self.backend is None:
            return None
        try:
            raw = await self.backend.get(key)
            if raw is None:
                return None
            return adapter.validate_json(raw)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}, computing directly: {e}")
            return None

    async def _write(self, key: str, value, adapter: TypeAdapter) -> bool:
        if self.backend is None:
            return False
        try:
            payload = adapter.dump_json(value, by_alias=True).decode()
            await self.backend.set(key, payload, ex=self.ttl_seconds)
            return True
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False
