"""Tests for PlaybackControlService (Spotify playback relay)."""

from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from auratune.application.services import PlaybackControlService
from auratune.domain.dtos import AuthSession
from auratune.domain.entities import RepeatState
from auratune.domain.exceptions import (
    AuthenticationError,
    NoActiveDeviceError,
    PremiumRequiredError,
    RateLimitExceededError,
)


def _player(is_playing: bool = False, with_item: bool = True, active: bool = True) -> dict[str, Any]:
    return {
        "is_playing": is_playing,
        "progress_ms": 1000,
        "shuffle_state": False,
        "repeat_state": "off",
        "device": {"id": "dev1", "name": "Laptop", "type": "Computer", "is_active": active},
        "item": {
            "id": "t1",
            "uri": "spotify:track:t1",
            "name": "Teardrop",
            "duration_ms": 330_000,
            "artists": [{"name": "Massive Attack"}],
            "album": {"name": "Mezzanine", "images": []},
        }
        if with_item
        else None,
    }


class TestPlaybackControlService:
    """Test the relay's device handling and error translation."""

    @pytest.fixture
    def service(self, mock_spotify: AsyncMock, auth_session: AuthSession) -> PlaybackControlService:
        return PlaybackControlService(mock_spotify, auth_session)

    async def test_state_snapshot(
        self, service: PlaybackControlService, mock_spotify: AsyncMock
    ) -> None:
        mock_spotify.get_playback_state.return_value = _player(is_playing=True)

        result = await service.get_playback_state()

        assert result.is_success
        snapshot = result.data
        assert snapshot is not None
        assert snapshot.is_playing
        assert snapshot.track is not None and snapshot.track.artists == "Massive Attack"
        assert snapshot.device is not None and snapshot.device.id == "dev1"

    async def test_state_idle_is_success_without_data(
        self, service: PlaybackControlService, mock_spotify: AsyncMock
    ) -> None:
        mock_spotify.get_playback_state.return_value = None

        result = await service.get_playback_state()

        assert result.is_success
        assert result.data is None

    async def test_unauthenticated_session(self, mock_spotify: AsyncMock) -> None:
        service = PlaybackControlService(
            mock_spotify, AuthSession(bearer_token=None, external_user_id=None, internal_user_id=None)
        )

        result = await service.play()

        assert result.error_code == "unauthenticated"
        mock_spotify.get_playback_state.assert_not_awaited()

    async def test_play_resumes_on_active_device(
        self, service: PlaybackControlService, mock_spotify: AsyncMock
    ) -> None:
        mock_spotify.get_playback_state.return_value = _player(is_playing=False)

        result = await service.play()

        assert result.is_success
        mock_spotify.play.assert_awaited_once_with("access-token", device_id="dev1")
        mock_spotify.get_devices.assert_not_awaited()

    async def test_play_when_already_playing_is_noop(
        self, service: PlaybackControlService, mock_spotify: AsyncMock
    ) -> None:
        mock_spotify.get_playback_state.return_value = _player(is_playing=True)

        result = await service.play()

        assert result.is_success
        mock_spotify.play.assert_not_awaited()

    async def test_play_transfers_to_first_unrestricted_device(
        self, service: PlaybackControlService, mock_spotify: AsyncMock
    ) -> None:
        mock_spotify.get_playback_state.return_value = None
        mock_spotify.get_devices.return_value = [
            {"id": "tv", "name": "TV", "is_active": False, "is_restricted": True},
            {"id": "phone", "name": "Phone", "is_active": False, "is_restricted": False},
        ]
        mock_spotify.get_recently_played.return_value = [
            {"track": {"uri": "spotify:track:recent"}}
        ]

        result = await service.play()

        assert result.is_success
        mock_spotify.transfer_playback.assert_awaited_once_with(
            "phone", "access-token", play=False
        )
        mock_spotify.play.assert_awaited_once_with(
            "access-token", device_id="phone", uris=["spotify:track:recent"]
        )

    async def test_play_without_devices_asks_to_open_player(
        self, service: PlaybackControlService, mock_spotify: AsyncMock
    ) -> None:
        mock_spotify.get_playback_state.return_value = None
        mock_spotify.get_devices.return_value = []

        result = await service.play()

        assert result.error_code == "no_active_device"
        assert "open.spotify.com" in result.message

    async def test_play_with_empty_history(
        self, service: PlaybackControlService, mock_spotify: AsyncMock
    ) -> None:
        mock_spotify.get_playback_state.return_value = _player(with_item=False)
        mock_spotify.get_recently_played.return_value = []

        result = await service.play()

        assert result.error_code == "no_track"

    async def test_pause_when_already_paused(
        self, service: PlaybackControlService, mock_spotify: AsyncMock
    ) -> None:
        mock_spotify.get_playback_state.return_value = _player(is_playing=False)

        result = await service.pause()

        assert result.is_success
        assert result.message == "Already paused."
        mock_spotify.pause.assert_not_awaited()

    async def test_toggle_pauses_when_playing(
        self, service: PlaybackControlService, mock_spotify: AsyncMock
    ) -> None:
        mock_spotify.get_playback_state.return_value = _player(is_playing=True)

        result = await service.toggle_play_pause()

        assert result.is_success
        mock_spotify.pause.assert_awaited_once_with("access-token", device_id="dev1")

    async def test_next_without_device(
        self, service: PlaybackControlService, mock_spotify: AsyncMock
    ) -> None:
        mock_spotify.get_playback_state.return_value = None

        result = await service.next_track()

        assert result.error_code == "no_active_device"
        assert result.message == "No active device found. Please start playback first."
        mock_spotify.next_track.assert_not_awaited()

    async def test_previous_uses_active_device(
        self, service: PlaybackControlService, mock_spotify: AsyncMock
    ) -> None:
        mock_spotify.get_playback_state.return_value = _player(is_playing=True)

        result = await service.previous_track()

        assert result.is_success
        mock_spotify.previous_track.assert_awaited_once_with("access-token", device_id="dev1")

    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (PremiumRequiredError(), "premium_required"),
            (NoActiveDeviceError(), "no_active_device"),
            (AuthenticationError("expired"), "unauthenticated"),
            (RateLimitExceededError("slow down", retry_after=5), "rate_limited"),
            (httpx.ReadTimeout("timeout"), "upstream"),
        ],
    )
    async def test_errors_are_translated(
        self,
        service: PlaybackControlService,
        mock_spotify: AsyncMock,
        error: Exception,
        code: str,
    ) -> None:
        mock_spotify.set_shuffle.side_effect = error

        result = await service.set_shuffle(True)

        assert not result.is_success
        assert result.error_code == code

    async def test_premium_message(
        self, service: PlaybackControlService, mock_spotify: AsyncMock
    ) -> None:
        mock_spotify.seek.side_effect = PremiumRequiredError()

        result = await service.seek(1000)

        assert "Premium" in result.message

    async def test_volume_out_of_range(
        self, service: PlaybackControlService, mock_spotify: AsyncMock
    ) -> None:
        result = await service.set_volume(101)

        assert result.error_code == "validation"
        assert result.message == "Volume must be between 0 and 100."
        mock_spotify.set_volume.assert_not_awaited()

    async def test_negative_seek(
        self, service: PlaybackControlService, mock_spotify: AsyncMock
    ) -> None:
        assert (await service.seek(-1)).error_code == "validation"
        mock_spotify.seek.assert_not_awaited()

    async def test_repeat_passes_wire_value(
        self, service: PlaybackControlService, mock_spotify: AsyncMock
    ) -> None:
        result = await service.set_repeat(RepeatState.CONTEXT)

        assert result.is_success
        mock_spotify.set_repeat.assert_awaited_once_with("context", "access-token")
