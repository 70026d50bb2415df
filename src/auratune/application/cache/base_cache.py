"""Base cache interface and in-memory implementation."""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

K = TypeVar("K")  # Key type
V = TypeVar("V")  # Value type


@dataclass
class CacheEntry(Generic[V]):
    """Cache entry with value and metadata."""

    value: V
    created_at: float
    ttl_seconds: int

    # Wall-clock based; a backwards clock jump can make live entries look expired.
    def is_expired(self, now: float | None = None) -> bool:
        """Check if cache entry is expired."""
        current = time.time() if now is None else now
        return current > (self.created_at + self.ttl_seconds)


class BaseCache(ABC, Generic[K, V]):
    """Base cache interface for all cache implementations."""

    @abstractmethod
    async def get(self, key: K) -> V | None:
        """Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value if found and not expired, None otherwise
        """
        pass

    @abstractmethod
    async def set(self, key: K, value: V, ttl_seconds: int = 3600) -> None:
        """Set value in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Time to live in seconds
        """
        pass

    @abstractmethod
    async def delete(self, key: K) -> bool:
        """Delete value from cache.

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Clear all entries from cache."""
        pass

    @abstractmethod
    async def exists(self, key: K) -> bool:
        """Check if key exists and is not expired."""
        pass


class InMemoryCache(BaseCache[K, V]):
    """In-memory cache implementation using a dictionary.

    Process-local: nothing survives a restart and nothing is shared between
    workers. Every access goes through ``_lock``.
    """

    def __init__(self) -> None:
        """Initialize in-memory cache."""
        self._cache: dict[K, CacheEntry[V]] = {}
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0

    # Expired entries are evicted on read, so get() mutates the dict.
    async def get(self, key: K) -> V | None:
        """Get value from cache."""
        async with self._lock:
            entry = self._cache.get(key)
            if not entry:
                self._misses += 1
                return None

            if entry.is_expired():
                del self._cache[key]
                self._misses += 1
                return None

            self._hits += 1
            return entry.value

    async def set(self, key: K, value: V, ttl_seconds: int = 3600) -> None:
        """Set value in cache, overwriting any existing entry."""
        async with self._lock:
            self._cache[key] = CacheEntry(
                value=value,
                created_at=time.time(),
                ttl_seconds=ttl_seconds,
            )

    async def delete(self, key: K) -> bool:
        """Delete value from cache."""
        async with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    async def delete_where(self, predicate: Callable[[K], bool]) -> int:
        """Delete every entry whose key satisfies ``predicate``.

        Returns:
            Number of entries removed
        """
        async with self._lock:
            doomed = [key for key in self._cache if predicate(key)]
            for key in doomed:
                del self._cache[key]
            return len(doomed)

    async def clear(self) -> None:
        """Clear all entries from cache."""
        async with self._lock:
            self._cache.clear()

    async def exists(self, key: K) -> bool:
        """Check if key exists in cache."""
        value = await self.get(key)
        return value is not None

    async def cleanup_expired(self) -> int:
        """Remove expired entries from cache.

        Returns:
            Number of entries removed
        """
        async with self._lock:
            now = time.time()
            expired_keys = [
                key for key, entry in self._cache.items() if entry.is_expired(now)
            ]
            for key in expired_keys:
                del self._cache[key]
            return len(expired_keys)

    # Not locked; the numbers are for health/debug output only.
    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        now = time.time()
        total_entries = len(self._cache)
        expired_entries = sum(
            1 for entry in self._cache.values() if entry.is_expired(now)
        )

        return {
            "total_entries": total_entries,
            "active_entries": total_entries - expired_entries,
            "expired_entries": expired_entries,
            "hits": self._hits,
            "misses": self._misses,
        }
