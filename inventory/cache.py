"""
In-process TTL cache and a memoizing query client on top of it.

Entries expire lazily: an expired entry is dropped the next time it is read
with get(), or on an explicit purge_expired() sweep.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300  # 5 minutes

_MISSING = object()


@dataclass
class CacheEntry:
    key: str
    value: Any
    stored_at: float
    expires_at: float

    def is_live(self, now: float) -> bool:
        # ttl <= 0 means the entry was already stale when written
        return self.expires_at > self.stored_at and now <= self.expires_at


class TTLCache:
    def __init__(self, default_ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self._store: dict[str, CacheEntry] = {}
        self.default_ttl = default_ttl
        self._clock = clock

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        now = self._clock()
        ttl = ttl if ttl is not None else self.default_ttl
        self._store[key] = CacheEntry(key=key, value=value, stored_at=now, expires_at=now + ttl)

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._store.get(key)
        if entry is None:
            return default
        if not entry.is_live(self._clock()):
            del self._store[key]
            return default
        return entry.value

    def has(self, key: str) -> bool:
        entry = self._store.get(key)
        return entry is not None and entry.is_live(self._clock())

    def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()

    def size(self) -> int:
        """Stored entries, counting expired ones nobody has read since."""
        return len(self._store)

    def __len__(self) -> int:
        return len(self._store)

    def keys(self) -> list[str]:
        return list(self._store)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, entry in self._store.items() if not entry.is_live(now)]
        for k in expired:
            del self._store[k]
        return len(expired)


class QueryClient:
    """
    Memoizes async fetches by key.

    query() returns the cached value while it is live, otherwise awaits
    fetch_fn(), caches the result for stale_time seconds and returns it.
    A failing fetch propagates its exception and caches nothing.

    With single_flight=True, concurrent queries for the same cold key share
    one in-flight task instead of each calling fetch_fn.
    """

    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        single_flight: bool = False,
    ):
        self.cache = cache if cache is not None else TTLCache()
        self.single_flight = single_flight
        self._inflight: dict[str, asyncio.Future] = {}

    async def query(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        stale_time: Optional[float] = None,
    ) -> Any:
        cached = self.cache.get(key, _MISSING)
        if cached is not _MISSING:
            logger.debug("cache hit %s", key)
            return cached

        if not self.single_flight:
            logger.debug("cache miss %s", key)
            result = await fetch_fn()
            self.cache.set(key, result, stale_time)
            return result

        pending = self._inflight.get(key)
        if pending is not None:
            logger.debug("joining in-flight fetch %s", key)
            return await asyncio.shield(pending)

        logger.debug("cache miss %s", key)
        task = asyncio.ensure_future(self._fetch_and_store(key, fetch_fn, stale_time))
        self._inflight[key] = task
        return await asyncio.shield(task)

    async def _fetch_and_store(self, key, fetch_fn, stale_time):
        try:
            result = await fetch_fn()
            self.cache.set(key, result, stale_time)
            return result
        finally:
            self._inflight.pop(key, None)

    def invalidate(self, key: str) -> None:
        self.cache.delete(key)

    def invalidate_prefix(self, prefix: str) -> int:
        keys = [k for k in self.cache.keys() if k.startswith(prefix)]
        for k in keys:
            self.cache.delete(k)
        return len(keys)

    def clear(self) -> None:
        self.cache.clear()

    def stats(self) -> dict:
        return {
            "size": self.cache.size(),
            "default_ttl": self.cache.default_ttl,
            "single_flight": self.single_flight,
        }
