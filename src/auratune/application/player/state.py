"""Player actions and the pure reducer that applies them.

Nothing here awaits or touches the network. The synchronizer feeds actions in one at a
time, so every PlaybackState it ever exposes came out of ``reduce``.
"""

from dataclasses import dataclass

from auratune.domain.entities import PlaybackSnapshot, PlaybackState, RepeatState


@dataclass(frozen=True)
class StateFromApi:
    """A successful poll that returned a snapshot."""

    snapshot: PlaybackSnapshot


@dataclass(frozen=True)
class NoActivePlayback:
    """A successful empty poll, or a no-active-device answer."""

    message: str


@dataclass(frozen=True)
class PollFailed:
    """Any other poll error."""

    message: str


@dataclass(frozen=True)
class SetPlayingOptimistic:
    is_playing: bool


@dataclass(frozen=True)
class SetProgressLocal:
    progress_ms: int


@dataclass(frozen=True)
class ProgressTick:
    """Advance local progress by ``elapsed_ms`` while playing."""

    elapsed_ms: int


@dataclass(frozen=True)
class SetVolume:
    volume_percent: int


@dataclass(frozen=True)
class SetShuffle:
    shuffle_state: bool


@dataclass(frozen=True)
class SetRepeat:
    repeat_state: RepeatState


@dataclass(frozen=True)
class SetError:
    message: str | None


@dataclass(frozen=True)
class SetSyncing:
    is_syncing: bool


@dataclass(frozen=True)
class Reset:
    """Back to the initial state (e.g. after logout)."""

    volume_percent: int = 50


PlayerAction = (
    StateFromApi
    | NoActivePlayback
    | PollFailed
    | SetPlayingOptimistic
    | SetProgressLocal
    | ProgressTick
    | SetVolume
    | SetShuffle
    | SetRepeat
    | SetError
    | SetSyncing
    | Reset
)


def initial_state(volume_percent: int = 50) -> PlaybackState:
    """Fresh player state: nothing known yet, first sync in flight."""
    return PlaybackState(volume_percent=volume_percent)


def _clamp_progress(state: PlaybackState, progress_ms: int) -> int:
    progress_ms = max(0, progress_ms)
    if state.track is not None and state.track.duration_ms > 0:
        progress_ms = min(progress_ms, state.track.duration_ms)
    return progress_ms


def _from_snapshot(state: PlaybackState, snapshot: PlaybackSnapshot) -> PlaybackState:
    device = snapshot.device
    volume = state.volume_percent
    if device is not None and device.volume_percent is not None:
        volume = device.volume_percent
    progress = snapshot.progress_ms
    if progress is not None and snapshot.track is not None and snapshot.track.duration_ms > 0:
        progress = max(0, min(progress, snapshot.track.duration_ms))
    return state.evolve(
        track=snapshot.track,
        is_playing=snapshot.is_playing,
        progress_ms=progress,
        volume_percent=volume,
        shuffle_state=snapshot.shuffle_state,
        repeat_state=snapshot.repeat_state,
        device_id=device.id if device else None,
        device_name=device.name if device else None,
        device_type=device.type if device else None,
        has_active_device=device is not None and device.id is not None,
        error=None,
        is_syncing=False,
        error_streak=0,
    )


# Hey future me, the poll is the authority. StateFromApi REPLACES every transport field, so
# whatever an optimistic command guessed gets overwritten on the next successful poll.
# PollFailed keeps the last known track on purpose: one flaky poll shouldn't blank the UI.
# Only after error_reset_threshold failures in a row do we drop the playback fields.
def reduce(
    state: PlaybackState, action: PlayerAction, error_reset_threshold: int = 3
) -> PlaybackState:
    """Apply one action and return the new state (never mutates ``state``)."""
    match action:
        case StateFromApi(snapshot=snapshot):
            return _from_snapshot(state, snapshot)

        case NoActivePlayback(message=message):
            if state.device_id is not None:
                return state.evolve(
                    has_active_device=False,
                    is_playing=False,
                    error=message,
                    is_syncing=False,
                )
            if state.track is None:
                return state.evolve(error=message, is_syncing=False)
            return state.evolve(is_syncing=False)

        case PollFailed(message=message):
            streak = state.error_streak + 1
            if streak >= error_reset_threshold:
                return state.evolve(
                    track=None,
                    is_playing=False,
                    progress_ms=None,
                    error=message,
                    is_syncing=False,
                    error_streak=streak,
                )
            return state.evolve(error=message, is_syncing=False, error_streak=streak)

        case SetPlayingOptimistic(is_playing=is_playing):
            return state.evolve(is_playing=is_playing)

        case SetProgressLocal(progress_ms=progress_ms):
            return state.evolve(progress_ms=_clamp_progress(state, progress_ms))

        case ProgressTick(elapsed_ms=elapsed_ms):
            track = state.track
            if (
                not state.is_playing
                or track is None
                or track.duration_ms <= 0
                or state.progress_ms is None
                or state.progress_ms >= track.duration_ms
            ):
                return state
            return state.evolve(
                progress_ms=min(state.progress_ms + elapsed_ms, track.duration_ms)
            )

        case SetVolume(volume_percent=volume_percent):
            return state.evolve(volume_percent=max(0, min(100, volume_percent)))

        case SetShuffle(shuffle_state=shuffle_state):
            return state.evolve(shuffle_state=shuffle_state)

        case SetRepeat(repeat_state=repeat_state):
            return state.evolve(repeat_state=repeat_state)

        case SetError(message=message):
            return state.evolve(error=message, is_syncing=False)

        case SetSyncing(is_syncing=is_syncing):
            return state.evolve(is_syncing=is_syncing)

        case Reset(volume_percent=volume_percent):
            return initial_state(volume_percent).evolve(is_syncing=False)

    return state
