"""Integration tests for generating, saving and listing playlists over HTTP."""

import json
from collections.abc import Callable, Iterator
from typing import Any
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from auratune.api.dependencies import get_spotify_client, get_text_generator
from auratune.domain.exceptions import RateLimitExceededError
from auratune.infrastructure.lifecycle import DEFAULT_NAMING_PROMPT

AUTH = {
    "Authorization": "Bearer access-token",
    "X-Spotify-User-Id": "spotify-user",
    "X-User-Id": "user-1",
}

# Hey future me - the database, repositories and services are REAL here (seeded by the
# lifespan); only Spotify and the LLM are swapped through dependency_overrides.


@pytest.fixture
def api(
    client: TestClient, mock_spotify: AsyncMock, mock_text_generator: AsyncMock
) -> Iterator[TestClient]:
    app: FastAPI = client.app  # type: ignore[assignment]
    app.dependency_overrides[get_spotify_client] = lambda: mock_spotify
    app.dependency_overrides[get_text_generator] = lambda: mock_text_generator
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def llm(mock_text_generator: AsyncMock) -> AsyncMock:
    def _answer(system: str, user: str) -> str:
        if system == DEFAULT_NAMING_PROMPT:
            return '{"name": "Golden Hour", "description": "Warm and slow."}'
        return json.dumps([{"title": f"Song {i}", "artist": f"Artist {i}"} for i in range(20)])

    mock_text_generator.generate.side_effect = _answer
    return mock_text_generator


@pytest.fixture
def catalog(
    mock_spotify: AsyncMock, spotify_track_json: Callable[..., dict[str, Any]]
) -> AsyncMock:
    def _search(query: str, access_token: str, limit: int = 1) -> list[dict[str, Any]]:
        index = query.split()[1]
        return [spotify_track_json(f"id{index}", f"Song {index}")]

    mock_spotify.search_tracks.side_effect = _search
    return mock_spotify


def _template_id(client: TestClient, name: str) -> str:
    return next(t["id"] for t in client.get("/api/templates").json() if t["name"] == name)


class TestGenerateAndSave:
    """Test the preview-then-save flow."""

    def test_template_preview(self, api: TestClient, llm: AsyncMock, catalog: AsyncMock) -> None:
        response = api.post(
            "/api/generate/template",
            headers=AUTH,
            json={"template_id": _template_id(api, "Sunset Chill")},
        )

        assert response.status_code == 200, response.text
        preview = response.json()
        assert preview["name"] == "Golden Hour"
        assert preview["total_tracks"] == 20
        assert preview["generation_method"] == "curated_template"
        assert preview["generation_params"]["template_name"] == "Sunset Chill"

    def test_save_then_list(
        self, api: TestClient, llm: AsyncMock, catalog: AsyncMock
    ) -> None:
        catalog.create_playlist.return_value = {
            "id": "pl1",
            "external_urls": {"spotify": "https://open.spotify.com/playlist/pl1"},
        }
        catalog.add_tracks_to_playlist.return_value = {"snapshot_id": "snap"}
        preview = api.post(
            "/api/generate/template",
            headers=AUTH,
            json={"template_id": _template_id(api, "Sunset Chill")},
        ).json()

        response = api.post(
            "/api/generate/save",
            headers=AUTH,
            json={
                "name": "Golden Hour (edited)",
                "description": preview["description"],
                "tracks": preview["tracks"][:15],
                "generation_method": preview["generation_method"],
                "generation_params": preview["generation_params"],
            },
        )

        assert response.status_code == 201, response.text
        assert response.json()["remote_playlist_id"] == "pl1"
        history = api.get("/api/playlists", headers=AUTH).json()
        assert [(p["name"], p["track_count"]) for p in history] == [
            ("Golden Hour (edited)", 15)
        ]
        assert api.get("/api/playlists/pl1", headers={"X-User-Id": "user-2"}).status_code == 404

    def test_low_yield_returns_partial_tracks(
        self,
        api: TestClient,
        llm: AsyncMock,
        mock_spotify: AsyncMock,
        spotify_track_json: Callable[..., dict[str, Any]],
    ) -> None:
        found = {"0", "1", "2"}
        mock_spotify.search_tracks.side_effect = lambda query, token, limit=1: (
            [spotify_track_json(f"id{query.split()[1]}")] if query.split()[1] in found else []
        )

        response = api.post(
            "/api/generate/template",
            headers=AUTH,
            json={"template_id": _template_id(api, "Sunset Chill")},
        )

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["error_code"] == "checking_yield"
        assert len(detail["partial"]["tracks"]) == 3

    def test_unknown_template(self, api: TestClient, llm: AsyncMock) -> None:
        response = api.post("/api/generate/template", headers=AUTH, json={"template_id": "nope"})

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["error_code"] == "resolving_context"
        assert detail["message"] == 'Template with ID "nope" not found.'

    def test_save_rejects_empty_track_list(self, api: TestClient) -> None:
        response = api.post(
            "/api/generate/save",
            headers=AUTH,
            json={"name": "Empty", "tracks": [], "generation_method": "track_match"},
        )

        assert response.status_code == 422


class TestCatalogLookups:
    """Test search and analytics passthroughs."""

    def test_search_requires_token(self, api: TestClient) -> None:
        assert api.get("/api/tracks/search", params={"q": "teardrop"}).status_code == 401

    def test_search(
        self,
        api: TestClient,
        mock_spotify: AsyncMock,
        spotify_track_json: Callable[..., dict[str, Any]],
    ) -> None:
        mock_spotify.search_tracks.return_value = [spotify_track_json("t1", "Teardrop")]

        response = api.get("/api/tracks/search", headers=AUTH, params={"q": "teardrop"})

        assert response.status_code == 200
        assert response.json()[0]["catalog_id"] == "t1"

    def test_rate_limit_maps_to_429(self, api: TestClient, mock_spotify: AsyncMock) -> None:
        mock_spotify.get_track.side_effect = RateLimitExceededError(
            "Spotify rate limit exceeded", retry_after=5
        )

        response = api.get("/api/tracks/t1", headers=AUTH)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "5"

    def test_top_artists(self, api: TestClient, mock_spotify: AsyncMock) -> None:
        mock_spotify.get_user_top_items.return_value = {
            "items": [{"id": "a1", "name": "Portishead", "genres": ["trip hop"], "images": []}],
            "total": 1,
        }

        response = api.get("/api/analytics/top/artists", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["items"][0]["genres"] == ["trip hop"]
