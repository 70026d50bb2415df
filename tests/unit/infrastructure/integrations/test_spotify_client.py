"""Tests for SpotifyClient against a mocked Spotify Web API."""

import json
import re
from collections.abc import AsyncGenerator

import httpx
import pytest
from pytest_httpx import HTTPXMock

from auratune.application.cache import SpotifyCache
from auratune.config.settings import RetrySettings, SpotifySettings
from auratune.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    EntityNotFoundException,
    NoActiveDeviceError,
    PremiumRequiredError,
    RateLimitExceededError,
    TransientUpstreamError,
    ValidationException,
)
from auratune.infrastructure.integrations import SpotifyClient
from auratune.infrastructure.rate_limiter import RateLimiter

API = "https://api.spotify.com/v1"

# Hey future me - every client here gets its OWN rate limiter and zero backoff, otherwise the
# process-wide limiter leaks tokens between tests and retries would sleep for real.


def _error(status: int, message: str, reason: str | None = None) -> dict[str, object]:
    error: dict[str, object] = {"status": status, "message": message}
    if reason:
        error["reason"] = reason
    return {"error": error}


@pytest.fixture
def cache() -> SpotifyCache:
    return SpotifyCache()


@pytest.fixture
async def spotify(cache: SpotifyCache) -> AsyncGenerator[SpotifyClient, None]:
    client = SpotifyClient(
        SpotifySettings(),
        retry_settings=RetrySettings(max_attempts=3, initial_delay=0, jitter=0),
        cache=cache,
        rate_limiter=RateLimiter.for_spotify(),
    )
    yield client
    await client.close()


class TestCatalog:
    """Test search and track lookups."""

    async def test_search_tracks(self, spotify: SpotifyClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            method="GET",
            url=re.compile(rf"{API}/search\?.*"),
            json={"tracks": {"items": [{"id": "t1", "name": "Teardrop"}]}},
        )

        items = await spotify.search_tracks("Teardrop Massive Attack", "token", limit=1)

        assert items == [{"id": "t1", "name": "Teardrop"}]
        request = httpx_mock.get_request()
        assert request is not None
        assert request.url.params["q"] == "Teardrop Massive Attack"
        assert request.url.params["type"] == "track"
        assert request.headers["Authorization"] == "Bearer token"

    async def test_search_is_cached(self, spotify: SpotifyClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=re.compile(rf"{API}/search\?.*"),
            json={"tracks": {"items": [{"id": "t1"}]}},
        )

        first = await spotify.search_tracks("same query", "token")
        second = await spotify.search_tracks("same query", "token")

        assert first == second
        assert len(httpx_mock.get_requests()) == 1

    async def test_search_validates_limit(self, spotify: SpotifyClient) -> None:
        with pytest.raises(ValidationException):
            await spotify.search_tracks("q", "token", limit=51)

    async def test_unknown_track(self, spotify: SpotifyClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=f"{API}/tracks/nope", status_code=404, json=_error(404, "Not found")
        )

        with pytest.raises(EntityNotFoundException) as exc_info:
            await spotify.get_track("nope", "token")

        assert exc_info.value.message == 'Track with ID "nope" not found on Spotify.'

    async def test_missing_token(self, spotify: SpotifyClient) -> None:
        with pytest.raises(AuthenticationError):
            await spotify.get_track("t1", "")


class TestErrorTranslation:
    """Test mapping of Spotify status codes to domain errors."""

    async def test_401(self, spotify: SpotifyClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{API}/tracks/t1", status_code=401, json=_error(401, "expired"))

        with pytest.raises(AuthenticationError):
            await spotify.get_track("t1", "token")

    async def test_403_premium_required(
        self, spotify: SpotifyClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            method="PUT",
            url=f"{API}/me/player/pause",
            status_code=403,
            json=_error(403, "Player command failed: Premium required", "PREMIUM_REQUIRED"),
        )

        with pytest.raises(PremiumRequiredError):
            await spotify.pause("token")

    async def test_403_other(self, spotify: SpotifyClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=f"{API}/tracks/t1", status_code=403, json=_error(403, "Insufficient scope")
        )

        with pytest.raises(AuthorizationError) as exc_info:
            await spotify.get_track("t1", "token")

        assert not isinstance(exc_info.value, PremiumRequiredError)

    async def test_404_on_player_means_no_device(
        self, spotify: SpotifyClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            method="POST",
            url=f"{API}/me/player/next",
            status_code=404,
            json=_error(404, "Player command failed: No active device found", "NO_ACTIVE_DEVICE"),
        )

        with pytest.raises(NoActiveDeviceError):
            await spotify.next_track("token")


class TestRetries:
    """Test 5xx/transport retries and 429 handling."""

    async def test_5xx_is_retried(self, spotify: SpotifyClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{API}/tracks/t1", status_code=503)
        httpx_mock.add_response(url=f"{API}/tracks/t1", json={"id": "t1"})

        track = await spotify.get_track("t1", "token")

        assert track == {"id": "t1"}
        assert len(httpx_mock.get_requests()) == 2

    async def test_5xx_gives_up_after_max_attempts(
        self, spotify: SpotifyClient, httpx_mock: HTTPXMock
    ) -> None:
        for _ in range(3):
            httpx_mock.add_response(url=f"{API}/tracks/t1", status_code=502)

        with pytest.raises(TransientUpstreamError):
            await spotify.get_track("t1", "token")

        assert len(httpx_mock.get_requests()) == 3

    async def test_transport_error_is_retried(
        self, spotify: SpotifyClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_exception(httpx.ConnectError("connection refused"))
        httpx_mock.add_response(url=f"{API}/tracks/t1", json={"id": "t1"})

        assert await spotify.get_track("t1", "token") == {"id": "t1"}

    async def test_4xx_is_not_retried(
        self, spotify: SpotifyClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=f"{API}/tracks/t1", status_code=401)

        with pytest.raises(AuthenticationError):
            await spotify.get_track("t1", "token")

        assert len(httpx_mock.get_requests()) == 1

    async def test_429_waits_and_retries(
        self, spotify: SpotifyClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=f"{API}/tracks/t1", status_code=429, headers={"Retry-After": "0"}
        )
        httpx_mock.add_response(url=f"{API}/tracks/t1", json={"id": "t1"})

        assert await spotify.get_track("t1", "token") == {"id": "t1"}

    async def test_429_exhausted(self, spotify: SpotifyClient, httpx_mock: HTTPXMock) -> None:
        for _ in range(4):
            httpx_mock.add_response(
                url=f"{API}/tracks/t1", status_code=429, headers={"Retry-After": "0"}
            )

        with pytest.raises(RateLimitExceededError) as exc_info:
            await spotify.get_track("t1", "token")

        assert exc_info.value.retry_after == 0


class TestPlaylists:
    """Test playlist creation and track adds."""

    async def test_create_private_playlist(
        self, spotify: SpotifyClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            method="POST",
            url=f"{API}/users/spotify-user/playlists",
            status_code=201,
            json={"id": "pl1", "external_urls": {"spotify": "https://open.spotify.com/playlist/pl1"}},
        )

        created = await spotify.create_playlist(
            "spotify-user", "Golden Hour", "token", description="Warm.", public=False
        )

        assert created["id"] == "pl1"
        request = httpx_mock.get_request()
        assert request is not None
        assert json.loads(request.content) == {
            "name": "Golden Hour",
            "description": "Warm.",
            "public": False,
        }

    async def test_timed_out_create_is_not_reposted(
        self, spotify: SpotifyClient, httpx_mock: HTTPXMock
    ) -> None:
        # The read timed out, so Spotify may already have created the playlist.
        httpx_mock.add_exception(httpx.ReadTimeout("read timed out"), method="POST")

        with pytest.raises(httpx.ReadTimeout):
            await spotify.create_playlist("spotify-user", "Golden Hour", "token")

        assert len(httpx_mock.get_requests(method="POST")) == 1

    async def test_create_retries_when_connection_failed(
        self, spotify: SpotifyClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_exception(httpx.ConnectError("connection refused"), method="POST")
        httpx_mock.add_response(
            method="POST",
            url=f"{API}/users/spotify-user/playlists",
            status_code=201,
            json={"id": "pl1"},
        )

        created = await spotify.create_playlist("spotify-user", "Golden Hour", "token")

        assert created["id"] == "pl1"
        assert len(httpx_mock.get_requests(method="POST")) == 2

    async def test_add_tracks_5xx_is_not_retried(
        self, spotify: SpotifyClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            method="POST", url=f"{API}/playlists/pl1/tracks", status_code=502
        )

        with pytest.raises(TransientUpstreamError):
            await spotify.add_tracks_to_playlist("pl1", ["spotify:track:t1"], "token")

        assert len(httpx_mock.get_requests()) == 1

    async def test_create_rejects_long_name(self, spotify: SpotifyClient) -> None:
        with pytest.raises(ValidationException):
            await spotify.create_playlist("u", "x" * 101, "token")

    async def test_add_tracks_caps_batch(self, spotify: SpotifyClient) -> None:
        uris = [f"spotify:track:{i}" for i in range(101)]
        with pytest.raises(ValidationException):
            await spotify.add_tracks_to_playlist("pl1", uris, "token")


class TestPlayback:
    """Test playback endpoints."""

    async def test_nothing_playing_returns_none(
        self, spotify: SpotifyClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(method="GET", url=f"{API}/me/player", status_code=204)

        assert await spotify.get_playback_state("token") is None

    async def test_play_with_uris_on_device(
        self, spotify: SpotifyClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            method="PUT", url=f"{API}/me/player/play?device_id=dev1", status_code=204
        )

        await spotify.play("token", device_id="dev1", uris=["spotify:track:t1"])

        request = httpx_mock.get_request()
        assert request is not None
        assert json.loads(request.content) == {"uris": ["spotify:track:t1"]}

    async def test_shuffle_param(self, spotify: SpotifyClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            method="PUT", url=f"{API}/me/player/shuffle?state=true", status_code=204
        )

        await spotify.set_shuffle(True, "token")

    async def test_invalid_repeat_mode(self, spotify: SpotifyClient) -> None:
        with pytest.raises(ValidationException):
            await spotify.set_repeat("forever", "token")
