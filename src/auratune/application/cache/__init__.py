"""Caching layer - Cache implementations for reducing API calls."""

from auratune.application.cache.base_cache import BaseCache, InMemoryCache
from auratune.application.cache.spotify_cache import SpotifyCache

__all__ = [
    "BaseCache",
    "InMemoryCache",
    "SpotifyCache",
]
