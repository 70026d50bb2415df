"""Configuration module for AuraTune."""

from .settings import (
    CacheSettings,
    GenerationSettings,
    OpenRouterSettings,
    PlayerSettings,
    RetrySettings,
    Settings,
    SpotifySettings,
    get_settings,
)

__all__ = [
    "CacheSettings",
    "GenerationSettings",
    "OpenRouterSettings",
    "PlayerSettings",
    "RetrySettings",
    "Settings",
    "SpotifySettings",
    "get_settings",
]
