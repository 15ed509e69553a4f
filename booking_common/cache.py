"""TTL cache for catalog listings, invalidated on every catalog write."""
from __future__ import annotations

from typing import Generic, Optional, TypeVar

from cachetools import TTLCache

T = TypeVar("T")


class SimpleTTLCache(Generic[T]):
    def __init__(self, ttl: int, maxsize: int = 256) -> None:
        self._cache: TTLCache[str, T] = TTLCache(maxsize=maxsize, ttl=ttl)

    def get(self, key: str) -> Optional[T]:
        return self._cache.get(key)

    def set(self, key: str, value: T) -> None:
        self._cache[key] = value

    def pop(self, key: str) -> None:
        self._cache.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with ``prefix``; returns how many were dropped."""
        stale = [key for key in list(self._cache.keys()) if key.startswith(prefix)]
        for key in stale:
            self._cache.pop(key, None)
        return len(stale)

    def clear(self) -> None:
        self._cache.clear()


def listing_key(kind: str, *parts: object) -> str:
    return ":".join([f"{kind}-list", *(str(part) for part in parts)])
