"""External integration client implementations."""

from auratune.infrastructure.integrations.openrouter_client import OpenRouterClient
from auratune.infrastructure.integrations.spotify_client import SpotifyClient

__all__ = [
    "OpenRouterClient",
    "SpotifyClient",
]
