"""Spotify catalog response cache.

Hey future me - this cache is INJECTED into SpotifyClient by the lifespan (no module
singleton), so tests can hand in their own or pass None to disable caching.

Only catalog reads go in here: track lookups and search results. Playback state is
never cached, it would defeat the whole point of polling.
"""

import asyncio
import hashlib
import json
import logging
from typing import Any

from auratune.application.cache.base_cache import InMemoryCache

logger = logging.getLogger(__name__)


class SpotifyCache:
    """Cache for Spotify Web API responses keyed by request signature."""

    TRACK_TTL = 3600  # 1 hour
    SEARCH_TTL = 3600  # 1 hour

    def __init__(self, default_ttl: int = 3600) -> None:
        """Initialize Spotify cache.

        Args:
            default_ttl: TTL for signatures without a dedicated TTL
        """
        self._cache: InMemoryCache[str, Any] = InMemoryCache()
        self.default_ttl = default_ttl

    @staticmethod
    def make_key(kind: str, **params: Any) -> str:
        """Build a stable key from the request kind and its parameters.

        Parameter order doesn't matter; values are JSON-encoded and hashed so
        long search queries stay compact.
        """
        payload = json.dumps(params, sort_keys=True, default=str)
        digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()[:24]
        return f"spotify:{kind}:{digest}"

    async def get(self, kind: str, **params: Any) -> Any | None:
        """Look up a cached response."""
        return await self._cache.get(self.make_key(kind, **params))

    async def put(
        self, kind: str, value: Any, ttl_seconds: int | None = None, **params: Any
    ) -> None:
        """Store a response under its request signature."""
        ttl = ttl_seconds if ttl_seconds is not None else self._ttl_for(kind)
        await self._cache.set(self.make_key(kind, **params), value, ttl)

    async def invalidate(self, kind: str | None = None) -> int:
        """Drop cached responses of one kind, or everything when kind is None.

        Returns:
            Number of entries removed
        """
        if kind is None:
            removed = self._cache.get_stats()["total_entries"]
            await self._cache.clear()
            return int(removed)
        prefix = f"spotify:{kind}:"
        return await self._cache.delete_where(lambda key: key.startswith(prefix))

    async def cleanup_expired(self) -> int:
        """Drop every expired entry, read or not."""
        return await self._cache.cleanup_expired()

    # Listen up, entries are only evicted when READ after expiry. Search keys are mostly
    # one-off, so without this sweep the dict grows for as long as the process lives.
    async def sweep_forever(self, interval_seconds: float) -> None:
        """Periodically remove expired entries until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            removed = await self.cleanup_expired()
            if removed:
                logger.debug("Swept %d expired Spotify cache entries", removed)

    def get_stats(self) -> dict[str, Any]:
        """Expose underlying cache statistics."""
        return self._cache.get_stats()

    def _ttl_for(self, kind: str) -> int:
        return {
            "track": self.TRACK_TTL,
            "search": self.SEARCH_TTL,
        }.get(kind, self.default_ttl)
