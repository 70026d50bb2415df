"""Tests for the playlist generation pipeline."""

import json
import logging
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest
from pytest_mock import MockerFixture
from sqlalchemy.exc import OperationalError

from auratune.application.services import (
    GenerationStage,
    PlaylistGenerationService,
    SuggestionService,
    TrackValidator,
)
from auratune.config.settings import GenerationSettings
from auratune.domain.dtos import AuthSession
from auratune.domain.entities import (
    CuratedTemplate,
    GenerationMethod,
    SystemPrompt,
    UserSettings,
)
from auratune.domain.exceptions import EntityNotFoundException, ValidationException
from auratune.domain.ports import (
    ICuratedTemplateRepository,
    ISystemPromptRepository,
    IUserSettingsRepository,
)

# Hey future me - these tests run the REAL validator and suggestion service; only the edges
# (Spotify, the LLM, the repositories) are doubles. The LLM double answers the song prompt
# with N suggestions and the naming prompt with a fixed name, told apart by the system prompt.

SUNSET = CuratedTemplate(
    id="tpl-sunset",
    name="Sunset Chill",
    description="Warm, mellow tracks for winding down.",
    system_prompt="You are a chill music curator.",
)
NAMING = SystemPrompt(id="p-name", name="playlist-naming", content="You name playlists.")
TRACK_MATCH = SystemPrompt(id="p-match", name="track-match", content="You match songs.")


def _songs(count: int) -> str:
    return json.dumps([{"title": f"Song {i}", "artist": f"Artist {i}"} for i in range(count)])


class TestPlaylistGenerationService:
    """Test generate_from_template and generate_from_track_match."""

    @pytest.fixture
    def templates(self) -> AsyncMock:
        repo = AsyncMock(spec=ICuratedTemplateRepository)
        repo.get.side_effect = lambda template_id: SUNSET if template_id == SUNSET.id else None
        return repo

    @pytest.fixture
    def prompts(self) -> AsyncMock:
        repo = AsyncMock(spec=ISystemPromptRepository)
        by_name = {NAMING.name: NAMING, TRACK_MATCH.name: TRACK_MATCH}
        repo.get_active_by_name.side_effect = by_name.get
        return repo

    @pytest.fixture
    def user_settings(self) -> AsyncMock:
        repo = AsyncMock(spec=IUserSettingsRepository)
        repo.get.return_value = UserSettings(user_id="user-1", default_playlist_track_count=20)
        return repo

    @pytest.fixture
    def llm_answers(self) -> dict[str, str]:
        return {
            SUNSET.system_prompt: _songs(20),
            TRACK_MATCH.content: _songs(10),
            NAMING.content: '{"name": "Golden Hour", "description": "Warm and slow."}',
        }

    @pytest.fixture
    def service(
        self,
        mock_spotify: AsyncMock,
        mock_text_generator: AsyncMock,
        templates: AsyncMock,
        prompts: AsyncMock,
        user_settings: AsyncMock,
        llm_answers: dict[str, str],
    ) -> PlaylistGenerationService:
        mock_text_generator.generate.side_effect = lambda system, user: llm_answers[system]
        settings = GenerationSettings()
        return PlaylistGenerationService(
            spotify_client=mock_spotify,
            track_validator=TrackValidator(mock_spotify, settings),
            suggestion_service=SuggestionService(mock_text_generator, settings),
            template_repository=templates,
            prompt_repository=prompts,
            settings_repository=user_settings,
            settings=settings,
        )

    @staticmethod
    def _catalog_with(
        found: int, spotify_track_json: Callable[..., dict[str, Any]]
    ) -> Callable[..., list[dict[str, Any]]]:
        """Search double: only the first ``found`` songs exist on Spotify."""

        def _search(query: str, access_token: str, limit: int = 1) -> list[dict[str, Any]]:
            index = int(query.split()[1])
            return [spotify_track_json(f"id{index}", f"Song {index}")] if index < found else []

        return _search

    async def test_template_happy_path(
        self,
        service: PlaylistGenerationService,
        mock_spotify: AsyncMock,
        auth_session: AuthSession,
        spotify_track_json: Callable[..., dict[str, Any]],
    ) -> None:
        mock_spotify.search_tracks.side_effect = self._catalog_with(20, spotify_track_json)

        result = await service.generate_from_template(auth_session, SUNSET.id)

        assert result.is_success, result.message
        preview = result.data
        assert preview is not None
        assert preview.total_tracks == 20
        assert preview.name == "Golden Hour"
        assert preview.generation_method is GenerationMethod.CURATED_TEMPLATE
        assert preview.generation_params == {
            "template_id": SUNSET.id,
            "template_name": "Sunset Chill",
        }
        assert preview.estimated_duration_ms == 20 * 180_000
        assert result.warnings == []

    async def test_sunset_chill_low_yield_fails_with_partial_tracks(
        self,
        service: PlaylistGenerationService,
        mock_spotify: AsyncMock,
        mock_text_generator: AsyncMock,
        auth_session: AuthSession,
        spotify_track_json: Callable[..., dict[str, Any]],
    ) -> None:
        """20 suggestions, only 3 on Spotify: fail before naming, keep the 3."""
        mock_spotify.search_tracks.side_effect = self._catalog_with(3, spotify_track_json)

        result = await service.generate_from_template(auth_session, SUNSET.id)

        assert not result.is_success
        assert result.error_code == GenerationStage.CHECKING_YIELD.value
        assert "Only 3 tracks were found (minimum 5 required)" in result.message
        assert "You can try saving these" in result.message
        assert result.data is not None
        assert [t.catalog_id for t in result.data.tracks] == ["id0", "id1", "id2"]
        # The naming prompt is never sent when the yield check fails.
        systems = [call.args[0] for call in mock_text_generator.generate.await_args_list]
        assert NAMING.content not in systems

    async def test_zero_yield_suggests_another_template(
        self,
        service: PlaylistGenerationService,
        mock_spotify: AsyncMock,
        auth_session: AuthSession,
    ) -> None:
        mock_spotify.search_tracks.return_value = []

        result = await service.generate_from_template(auth_session, SUNSET.id)

        assert result.error_code == "checking_yield"
        assert result.data is None
        assert "choose a different template" in result.message

    async def test_partial_yield_above_minimum_warns(
        self,
        service: PlaylistGenerationService,
        mock_spotify: AsyncMock,
        auth_session: AuthSession,
        spotify_track_json: Callable[..., dict[str, Any]],
    ) -> None:
        mock_spotify.search_tracks.side_effect = self._catalog_with(12, spotify_track_json)

        result = await service.generate_from_template(auth_session, SUNSET.id)

        assert result.is_success
        assert result.data is not None and result.data.total_tracks == 12
        assert result.warnings == [
            "Only 12 of the 20 requested tracks were found on Spotify."
        ]

    async def test_incomplete_session_fails_before_any_call(
        self,
        service: PlaylistGenerationService,
        mock_spotify: AsyncMock,
        mock_text_generator: AsyncMock,
        templates: AsyncMock,
    ) -> None:
        session = AuthSession(bearer_token="t", external_user_id=None, internal_user_id="u")

        result = await service.generate_from_template(session, SUNSET.id)

        assert result.error_code == "resolving_context"
        assert result.message == "User session not found or incomplete. Please log in again."
        templates.get.assert_not_awaited()
        mock_text_generator.generate.assert_not_awaited()
        mock_spotify.search_tracks.assert_not_awaited()

    async def test_unknown_template(
        self, service: PlaylistGenerationService, auth_session: AuthSession
    ) -> None:
        result = await service.generate_from_template(auth_session, "missing")

        assert result.error_code == "resolving_context"
        assert 'Template with ID "missing" not found.' == result.message

    async def test_inactive_template_is_not_found(
        self,
        service: PlaylistGenerationService,
        templates: AsyncMock,
        auth_session: AuthSession,
    ) -> None:
        templates.get.side_effect = None
        templates.get.return_value = CuratedTemplate(
            id="old", name="Old", description="d", system_prompt="p", is_active=False
        )

        result = await service.generate_from_template(auth_session, "old")

        assert result.error_code == "resolving_context"

    async def test_missing_user_settings(
        self,
        service: PlaylistGenerationService,
        user_settings: AsyncMock,
        auth_session: AuthSession,
    ) -> None:
        user_settings.get.return_value = None

        result = await service.generate_from_template(auth_session, SUNSET.id)

        assert result.error_code == "resolving_context"
        assert result.message == "No user settings found for the given user ID."

    async def test_missing_naming_prompt(
        self,
        service: PlaylistGenerationService,
        prompts: AsyncMock,
        auth_session: AuthSession,
    ) -> None:
        prompts.get_active_by_name.side_effect = lambda name: None

        result = await service.generate_from_template(auth_session, SUNSET.id)

        assert result.error_code == "resolving_context"
        assert "playlist-naming" in result.message

    async def test_database_error_is_reported_at_stage(
        self,
        service: PlaylistGenerationService,
        templates: AsyncMock,
        auth_session: AuthSession,
    ) -> None:
        templates.get.side_effect = OperationalError("SELECT", {}, Exception("disk I/O error"))

        result = await service.generate_from_template(auth_session, SUNSET.id)

        assert not result.is_success
        assert result.error_code == "resolving_context"

    async def test_untranslated_domain_error_becomes_stage_failure(
        self,
        service: PlaylistGenerationService,
        prompts: AsyncMock,
        auth_session: AuthSession,
    ) -> None:
        prompts.get_active_by_name.side_effect = ValidationException("prompt name too long")

        result = await service.generate_from_template(auth_session, SUNSET.id)

        assert not result.is_success
        assert result.error_code == "resolving_context"
        assert result.message == "prompt name too long"

    async def test_domain_error_from_llm_port_is_reported_at_suggestions(
        self,
        service: PlaylistGenerationService,
        mock_spotify: AsyncMock,
        auth_session: AuthSession,
        mocker: MockerFixture,
    ) -> None:
        mocker.patch.object(
            SuggestionService,
            "generate_suggestions",
            side_effect=EntityNotFoundException("Model", "test/model"),
        )

        result = await service.generate_from_template(auth_session, SUNSET.id)

        assert result.error_code == "generating_suggestions"
        mock_spotify.search_tracks.assert_not_awaited()

    async def test_terminal_stage_is_logged(
        self,
        service: PlaylistGenerationService,
        mock_spotify: AsyncMock,
        auth_session: AuthSession,
        spotify_track_json: Callable[..., dict[str, Any]],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        mock_spotify.search_tracks.side_effect = self._catalog_with(20, spotify_track_json)

        with caplog.at_level(logging.INFO, logger="auratune.application.services"):
            await service.generate_from_template(auth_session, SUNSET.id)
            await service.generate_from_template(auth_session, "tpl-missing")

        messages = [r.getMessage() for r in caplog.records]
        assert any(m.startswith(f"Generation {GenerationStage.DONE.value}:") for m in messages)
        assert any(
            m.startswith(f"Generation {GenerationStage.FAILED.value} at resolving_context")
            for m in messages
        )

    async def test_llm_failure_stops_at_suggestions(
        self,
        service: PlaylistGenerationService,
        mock_text_generator: AsyncMock,
        mock_spotify: AsyncMock,
        auth_session: AuthSession,
    ) -> None:
        mock_text_generator.generate.side_effect = None
        mock_text_generator.generate.return_value = "sorry, no JSON today"

        result = await service.generate_from_template(auth_session, SUNSET.id)

        assert result.error_code == "generating_suggestions"
        mock_spotify.search_tracks.assert_not_awaited()

    async def test_naming_failure_stops_at_metadata(
        self,
        service: PlaylistGenerationService,
        mock_spotify: AsyncMock,
        llm_answers: dict[str, str],
        auth_session: AuthSession,
        spotify_track_json: Callable[..., dict[str, Any]],
    ) -> None:
        mock_spotify.search_tracks.side_effect = self._catalog_with(20, spotify_track_json)
        llm_answers[NAMING.content] = "no idea"

        result = await service.generate_from_template(auth_session, SUNSET.id)

        assert result.error_code == "computing_metadata"

    async def test_track_match_happy_path(
        self,
        service: PlaylistGenerationService,
        mock_spotify: AsyncMock,
        mock_text_generator: AsyncMock,
        user_settings: AsyncMock,
        auth_session: AuthSession,
        spotify_track_json: Callable[..., dict[str, Any]],
    ) -> None:
        user_settings.get.return_value = UserSettings(
            user_id="user-1", default_playlist_track_count=10
        )
        mock_spotify.get_track.return_value = spotify_track_json(
            "seed", "Teardrop", "Massive Attack"
        )
        mock_spotify.search_tracks.side_effect = self._catalog_with(10, spotify_track_json)

        result = await service.generate_from_track_match(auth_session, "seed")

        assert result.is_success, result.message
        assert result.data is not None
        assert result.data.generation_method is GenerationMethod.TRACK_MATCH
        assert result.data.generation_params["seed_track_name"] == "Teardrop"
        assert result.data.generation_params["seed_artists"] == "Massive Attack"
        song_call = mock_text_generator.generate.await_args_list[0]
        assert "Seed Song: 'Teardrop' by Massive Attack." in song_call.args[1]
        assert "exactly 10 unique song suggestions" in song_call.args[1]

    async def test_track_match_low_yield_mentions_seed(
        self,
        service: PlaylistGenerationService,
        mock_spotify: AsyncMock,
        auth_session: AuthSession,
        spotify_track_json: Callable[..., dict[str, Any]],
    ) -> None:
        mock_spotify.get_track.return_value = spotify_track_json("seed", "Teardrop")
        mock_spotify.search_tracks.return_value = []

        result = await service.generate_from_track_match(auth_session, "seed")

        assert result.error_code == "checking_yield"
        assert 'similar to "Teardrop"' in result.message
        assert "different seed song" in result.message

    async def test_track_match_unknown_seed(
        self,
        service: PlaylistGenerationService,
        mock_spotify: AsyncMock,
        auth_session: AuthSession,
    ) -> None:
        mock_spotify.get_track.side_effect = EntityNotFoundException(
            "Track", "nope", 'Track with ID "nope" not found on Spotify.'
        )

        result = await service.generate_from_track_match(auth_session, "nope")

        assert result.error_code == "resolving_context"
        assert "not found on Spotify" in result.message
