"""Tests for the playback state reducer."""

import pytest

from auratune.application.player import initial_state, reduce
from auratune.application.player.state import (
    NoActivePlayback,
    PollFailed,
    ProgressTick,
    Reset,
    SetError,
    SetPlayingOptimistic,
    SetProgressLocal,
    SetVolume,
    StateFromApi,
)
from auratune.domain.entities import (
    PlaybackDevice,
    PlaybackSnapshot,
    PlaybackState,
    PlayerTrackInfo,
    RepeatState,
)

TRACK = PlayerTrackInfo(
    id="t1",
    uri="spotify:track:t1",
    name="Teardrop",
    artists="Massive Attack",
    album_name="Mezzanine",
    album_art_url=None,
    duration_ms=30_000,
)
DEVICE = PlaybackDevice(id="dev1", name="Laptop", type="Computer", is_active=True, volume_percent=70)


def _snapshot(**overrides: object) -> PlaybackSnapshot:
    values: dict[str, object] = {
        "track": TRACK,
        "is_playing": True,
        "progress_ms": 10_000,
        "shuffle_state": True,
        "repeat_state": RepeatState.CONTEXT,
        "device": DEVICE,
    }
    values.update(overrides)
    return PlaybackSnapshot(**values)  # type: ignore[arg-type]


@pytest.fixture
def synced() -> PlaybackState:
    return reduce(initial_state(), StateFromApi(_snapshot()))


class TestInitialState:
    def test_defaults(self) -> None:
        state = initial_state()
        assert state.track is None
        assert not state.is_playing
        assert state.volume_percent == 50
        assert state.is_syncing
        assert not state.has_active_device


class TestStateFromApi:
    """A successful poll replaces every transport field."""

    def test_replaces_fields(self, synced: PlaybackState) -> None:
        assert synced.track == TRACK
        assert synced.is_playing
        assert synced.progress_ms == 10_000
        assert synced.volume_percent == 70
        assert synced.shuffle_state
        assert synced.repeat_state is RepeatState.CONTEXT
        assert synced.device_id == "dev1"
        assert synced.has_active_device
        assert not synced.is_syncing
        assert synced.error is None

    def test_overrides_optimistic_guess(self, synced: PlaybackState) -> None:
        guessed = reduce(synced, SetPlayingOptimistic(False))
        assert not guessed.is_playing

        confirmed = reduce(guessed, StateFromApi(_snapshot(is_playing=True)))
        assert confirmed.is_playing

    def test_clamps_progress_to_duration(self) -> None:
        state = reduce(initial_state(), StateFromApi(_snapshot(progress_ms=99_999)))
        assert state.progress_ms == 30_000

    def test_clears_error_streak(self, synced: PlaybackState) -> None:
        failing = reduce(synced, PollFailed("boom"))
        assert failing.error_streak == 1

        recovered = reduce(failing, StateFromApi(_snapshot()))
        assert recovered.error_streak == 0
        assert recovered.error is None

    def test_device_without_id_is_not_active(self) -> None:
        device = PlaybackDevice(id=None, name="Restricted", type="Speaker")
        state = reduce(initial_state(), StateFromApi(_snapshot(device=device)))
        assert not state.has_active_device


class TestNoActivePlayback:
    def test_known_device_goes_inactive(self, synced: PlaybackState) -> None:
        state = reduce(synced, NoActivePlayback("No device"))

        assert not state.has_active_device
        assert not state.is_playing
        assert state.error == "No device"
        # The last track stays visible.
        assert state.track == TRACK

    def test_first_poll_without_anything(self) -> None:
        state = reduce(initial_state(), NoActivePlayback("No device"))

        assert state.error == "No device"
        assert not state.is_syncing


class TestPollFailed:
    def test_keeps_track_below_threshold(self, synced: PlaybackState) -> None:
        state = reduce(synced, PollFailed("network"))
        state = reduce(state, PollFailed("network"))

        assert state.track == TRACK
        assert state.error == "network"
        assert state.error_streak == 2

    def test_clears_playback_at_threshold(self, synced: PlaybackState) -> None:
        state = synced
        for _ in range(3):
            state = reduce(state, PollFailed("network"))

        assert state.track is None
        assert not state.is_playing
        assert state.progress_ms is None


class TestLocalActions:
    def test_progress_tick_advances_while_playing(self, synced: PlaybackState) -> None:
        assert reduce(synced, ProgressTick(1000)).progress_ms == 11_000

    def test_progress_tick_never_passes_duration(self, synced: PlaybackState) -> None:
        state = synced
        for _ in range(50):
            state = reduce(state, ProgressTick(1000))
        assert state.progress_ms == TRACK.duration_ms

    def test_progress_tick_ignored_when_paused(self, synced: PlaybackState) -> None:
        paused = reduce(synced, SetPlayingOptimistic(False))
        assert reduce(paused, ProgressTick(1000)).progress_ms == 10_000

    def test_progress_tick_without_track(self) -> None:
        state = initial_state()
        assert reduce(state, ProgressTick(1000)) == state

    def test_local_seek_is_clamped(self, synced: PlaybackState) -> None:
        assert reduce(synced, SetProgressLocal(45_000)).progress_ms == 30_000
        assert reduce(synced, SetProgressLocal(-5)).progress_ms == 0

    @pytest.mark.parametrize(("value", "expected"), [(-10, 0), (55, 55), (150, 100)])
    def test_volume_is_clamped(self, synced: PlaybackState, value: int, expected: int) -> None:
        assert reduce(synced, SetVolume(value)).volume_percent == expected

    def test_set_error_stops_syncing(self, synced: PlaybackState) -> None:
        state = reduce(synced, SetError("oops"))
        assert state.error == "oops"
        assert not state.is_syncing

    def test_reset(self, synced: PlaybackState) -> None:
        state = reduce(synced, Reset(volume_percent=30))
        assert state.track is None
        assert state.volume_percent == 30
        assert not state.is_syncing

    def test_reduce_does_not_mutate_input(self, synced: PlaybackState) -> None:
        reduce(synced, SetVolume(10))
        assert synced.volume_percent == 70
