"""Shared fixtures for unit and integration tests."""

from collections.abc import AsyncGenerator, Callable, Iterator
from typing import Any
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from auratune.config import Settings
from auratune.config.settings import (
    APISettings,
    CacheSettings,
    DatabaseSettings,
    GenerationSettings,
    OpenRouterSettings,
)
from auratune.domain.dtos import AuthSession
from auratune.domain.entities import ConfirmedTrack
from auratune.domain.ports import ISpotifyClient, ITextGenerator
from auratune.infrastructure.persistence import Database

# Hey future me - every test builds Settings explicitly so a developer's .env never leaks into
# the suite. In-memory SQLite uses StaticPool (see Database), so the tables created by one
# session are visible to the next one inside the same test.


@pytest.fixture
def settings() -> Settings:
    """Settings pointing at an in-memory database and a fake OpenRouter key."""
    return Settings(
        database=DatabaseSettings(url="sqlite+aiosqlite:///:memory:"),
        openrouter=OpenRouterSettings(api_key="test-key"),
        generation=GenerationSettings(),
        cache=CacheSettings(enabled=False),
        api=APISettings(cors_origins=["http://testserver"]),
    )


@pytest.fixture
async def db(settings: Settings) -> AsyncGenerator[Database, None]:
    """Fresh in-memory database with all tables."""
    database = Database(settings)
    await database.create_tables()
    yield database
    await database.close()


@pytest.fixture
def auth_session() -> AuthSession:
    """A complete session as the auth provider would hand it over."""
    return AuthSession(
        bearer_token="access-token",
        external_user_id="spotify-user",
        internal_user_id="user-1",
    )


@pytest.fixture
def mock_spotify() -> AsyncMock:
    """Spotify client double; tests set return values per call."""
    return AsyncMock(spec=ISpotifyClient)


@pytest.fixture
def mock_text_generator() -> AsyncMock:
    """Text generator double."""
    return AsyncMock(spec=ITextGenerator)


@pytest.fixture
def make_track() -> Callable[..., ConfirmedTrack]:
    """Factory for ConfirmedTrack with predictable ids."""

    def _make(index: int, duration_ms: int = 200_000, **overrides: Any) -> ConfirmedTrack:
        values: dict[str, Any] = {
            "catalog_id": f"track{index}",
            "uri": f"spotify:track:track{index}",
            "title": f"Song {index}",
            "artists": [f"Artist {index}"],
            "album_name": f"Album {index}",
            "duration_ms": duration_ms,
        }
        values.update(overrides)
        return ConfirmedTrack(**values)

    return _make


@pytest.fixture
def spotify_track_json() -> Callable[..., dict[str, Any]]:
    """Factory for Spotify track objects as the Web API returns them."""

    def _make(track_id: str, name: str = "Song", artist: str = "Artist") -> dict[str, Any]:
        return {
            "id": track_id,
            "uri": f"spotify:track:{track_id}",
            "name": name,
            "duration_ms": 180_000,
            "artists": [{"name": artist}],
            "album": {"name": "Album", "images": [{"url": "https://img/cover.jpg"}]},
        }

    return _make


@pytest.fixture
def client(settings: Settings) -> Iterator[TestClient]:
    """TestClient running the full lifespan against the in-memory database."""
    from auratune.main import create_app

    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client
