"""Application settings using Pydantic Settings.

Every concern gets its own nested settings object with its own env prefix,
so ``SPOTIFY_API_BASE_URL`` lands in ``settings.spotify.api_base_url`` and
``GENERATION_MIN_VALID_TRACKS`` lands in ``settings.generation.min_valid_tracks``.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SpotifySettings(BaseSettings):
    """Spotify Web API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPOTIFY_", env_file=".env", extra="ignore"
    )

    api_base_url: str = Field(
        default="https://api.spotify.com/v1",
        description="Base URL of the Spotify Web API",
    )
    timeout: float = Field(default=30.0, description="HTTP timeout in seconds")
    max_rate_limit_retries: int = Field(
        default=3, description="How often a 429 is waited out before giving up"
    )
    playlist_url_base: str = Field(
        default="https://open.spotify.com/playlist",
        description="Fallback base for playlist links when Spotify omits one",
    )


class OpenRouterSettings(BaseSettings):
    """OpenRouter (OpenAI-compatible) text generation configuration."""

    model_config = SettingsConfigDict(
        env_prefix="OPENROUTER_", env_file=".env", extra="ignore"
    )

    api_key: str = Field(default="", description="OpenRouter API key")
    base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="OpenAI-compatible endpoint",
    )
    model: str = Field(
        default="anthropic/claude-3-sonnet", description="Model slug to request"
    )
    timeout: float = Field(default=60.0, description="Request timeout in seconds")
    max_retries: int = Field(
        default=2, description="Retries performed by the OpenAI SDK itself"
    )
    temperature: float = Field(default=0.8, ge=0.0, le=2.0)

    @property
    def is_configured(self) -> bool:
        """Check whether an API key is present."""
        return bool(self.api_key.strip())


class DatabaseSettings(BaseSettings):
    """Database configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_", env_file=".env", extra="ignore"
    )

    url: str = Field(
        default="sqlite+aiosqlite:///./auratune.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")
    pool_pre_ping: bool = Field(default=True)
    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)
    pool_timeout: int = Field(default=30, ge=1)
    pool_recycle: int = Field(default=3600, ge=-1)


class GenerationSettings(BaseSettings):
    """Playlist generation pipeline tuning."""

    model_config = SettingsConfigDict(
        env_prefix="GENERATION_", env_file=".env", extra="ignore"
    )

    min_valid_tracks: int = Field(
        default=5, ge=1, description="Minimum validated tracks for a usable preview"
    )
    track_add_batch_size: int = Field(
        default=100, ge=1, le=100, description="Spotify caps track adds at 100"
    )
    max_suggestions: int = Field(default=100, ge=1, le=100)
    default_track_count: int = Field(default=20, ge=5, le=100)
    min_track_count: int = Field(default=5, ge=1)
    max_track_count: int = Field(default=100, le=100)
    validation_delay_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Pause between catalog searches while validating suggestions",
    )
    track_match_prompt_name: str = Field(default="track-match")
    naming_prompt_name: str = Field(default="playlist-naming")
    max_name_length: int = Field(default=100)
    max_description_length: int = Field(default=300)


class PlayerSettings(BaseSettings):
    """Playback synchronizer timing."""

    model_config = SettingsConfigDict(
        env_prefix="PLAYER_", env_file=".env", extra="ignore"
    )

    poll_interval_seconds: float = Field(default=1.0, gt=0)
    progress_tick_ms: int = Field(default=1000, gt=0)
    sync_after_control_delay_seconds: float = Field(default=0.5, ge=0)
    error_reset_threshold: int = Field(
        default=3,
        ge=1,
        description="Consecutive failed polls before known track info is cleared",
    )
    initial_volume_percent: int = Field(default=50, ge=0, le=100)


class RetrySettings(BaseSettings):
    """Retry policy for transient upstream failures."""

    model_config = SettingsConfigDict(
        env_prefix="RETRY_", env_file=".env", extra="ignore"
    )

    max_attempts: int = Field(default=3, ge=1)
    initial_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=8.0, ge=0)
    backoff_factor: float = Field(default=2.0, ge=1.0)
    jitter: float = Field(
        default=0.25, ge=0, le=1.0, description="Fraction of the delay added as jitter"
    )


class CacheSettings(BaseSettings):
    """Catalog response cache."""

    model_config = SettingsConfigDict(
        env_prefix="CACHE_", env_file=".env", extra="ignore"
    )

    enabled: bool = Field(default=True)
    ttl_seconds: int = Field(default=3600, ge=1)
    cleanup_interval_seconds: int = Field(
        default=300, ge=1, description="How often expired entries are swept"
    )


class ObservabilitySettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_", env_file=".env", extra="ignore"
    )

    json_format: bool = Field(
        default=False, description="Emit JSON log lines (production)"
    )


class APISettings(BaseSettings):
    """HTTP API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="API_", env_file=".env", extra="ignore"
    )

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    app_name: str = Field(default="AuraTune")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    openrouter: OpenRouterSettings = Field(default_factory=OpenRouterSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    player: PlayerSettings = Field(default_factory=PlayerSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    observability: ObservabilitySettings = Field(
        default_factory=ObservabilitySettings
    )
    api: APISettings = Field(default_factory=APISettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Normalize and validate the log level name."""
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return level

    def get_sqlite_db_path(self) -> Path | None:
        """Return the SQLite file path, or None for other backends and in-memory DBs."""
        url = self.database.url
        if not url.startswith("sqlite") or ":memory:" in url:
            return None
        _, _, path = url.partition(":///")
        return Path(path) if path else None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
