"""In-process key/value cache with a TTL per entry.

Expired entries are dropped lazily on read. get_or_compute has no stampede
protection: concurrent misses on one key each run the producer.
"""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, NamedTuple, TypeVar

from cachetools import TLRUCache

T = TypeVar("T")

_MISSING = object()


class _Entry(NamedTuple):
    value: Any
    ttl: float


def _expires_at(_key: str, entry: _Entry, now: float) -> float:
    return now + entry.ttl


class TTLStore:
    def __init__(self, maxsize: int = 10_000, timer: Callable[[], float] = time.monotonic) -> None:
        self._store: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_expires_at, timer=timer)

    def set(self, key: str, value: Any, ttl_sec: float) -> None:
        self._store[key] = _Entry(value, float(ttl_sec))

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._store.get(key, _MISSING)
        if entry is _MISSING:
            self._store.expire()
            return default
        return entry.value

    def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def delete_by_prefix(self, prefix: str) -> int:
        """Drop every key starting with prefix; returns how many were dropped."""
        keys = [k for k in list(self._store.keys()) if k.startswith(prefix)]
        for key in keys:
            self._store.pop(key, None)
        return len(keys)

    async def get_or_compute(self, key: str, producer: Callable[[], Awaitable[T]], ttl_sec: float) -> T:
        """Cached value if unexpired, else await producer and cache its result.

        None results are returned but not cached.
        """
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        value = await producer()
        if value is not None:
            self.set(key, value, ttl_sec)
        return value

    def clear(self) -> None:
        self._store.clear()

    def size(self) -> int:
        self._store.expire()
        return len(self._store)
