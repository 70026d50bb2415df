"""Keep a local PlaybackState in step with Spotify.

Two background tasks drive it: a poll loop that asks the gateway for the real state and a
progress tick that advances the local position between polls. Commands apply an
optimistic change, call the gateway, then re-poll so the remote answer wins.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any

from auratune.application.player.state import (
    NoActivePlayback,
    PlayerAction,
    PollFailed,
    ProgressTick,
    SetError,
    SetPlayingOptimistic,
    SetProgressLocal,
    SetRepeat,
    SetShuffle,
    SetSyncing,
    SetVolume,
    StateFromApi,
    initial_state,
    reduce,
)
from auratune.config.settings import PlayerSettings
from auratune.domain.dtos import ActionResult
from auratune.domain.entities import PlaybackState, RepeatState
from auratune.domain.ports import IPlaybackGateway

logger = logging.getLogger(__name__)

NO_DEVICE_MESSAGE = "No active Spotify device. Please start playback on a device."
INVALID_SEEK_MESSAGE = "Invalid seek position."

# (level, message) where level is "success" or "error"
NoticeCallback = Callable[[str, str], None]


class PlaybackSynchronizer:
    """Owns one PlaybackState and every path that changes it."""

    def __init__(
        self,
        gateway: IPlaybackGateway,
        settings: PlayerSettings | None = None,
        on_notice: NoticeCallback | None = None,
    ) -> None:
        self._gateway = gateway
        self._settings = settings or PlayerSettings()
        self._on_notice = on_notice
        self._state = initial_state(self._settings.initial_volume_percent)
        self._queue: deque[PlayerAction] = deque()
        self._draining = False
        self._tasks: list[asyncio.Task[None]] = []
        self._pending: set[asyncio.Task[None]] = set()
        self._stopped = False

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    # Yo, this is the ONLY writer of self._state. reduce() is synchronous and the drain loop
    # never awaits, so a dispatch from a timer can't interleave with one from a command.
    def dispatch(self, action: PlayerAction) -> PlaybackState:
        """Queue an action and drain the queue through the reducer."""
        self._queue.append(action)
        if self._draining:
            return self._state
        self._draining = True
        try:
            while self._queue:
                self._state = reduce(
                    self._state,
                    self._queue.popleft(),
                    self._settings.error_reset_threshold,
                )
        finally:
            self._draining = False
        return self._state

    def start(self) -> None:
        """Start the poll loop and the progress tick on the running loop."""
        if self._tasks:
            return
        self._stopped = False
        self._tasks = [
            asyncio.create_task(self._poll_loop(), name="playback-poll"),
            asyncio.create_task(self._tick_loop(), name="playback-progress"),
        ]
        logger.debug("Playback synchronizer started")

    async def stop(self) -> None:
        """Cancel timers and pending re-polls; late responses are ignored."""
        self._stopped = True
        tasks = [*self._tasks, *self._pending]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks = []
        self._pending.clear()
        logger.debug("Playback synchronizer stopped")

    async def poll_once(self) -> None:
        """Fetch remote state once and fold it into local state."""
        if self._stopped:
            return
        result = await self._gateway.get_playback_state()
        if self._stopped:
            return

        if result.is_success:
            if result.data is None:
                self.dispatch(NoActivePlayback(NO_DEVICE_MESSAGE))
            else:
                self.dispatch(StateFromApi(result.data))
        elif result.error_code == "no_active_device":
            self.dispatch(NoActivePlayback(result.message))
        else:
            self.dispatch(PollFailed(result.message))

    async def _poll_loop(self) -> None:
        while not self._stopped:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Playback poll crashed")
                self.dispatch(PollFailed(f"Failed to sync with Spotify: {e}"))
            await asyncio.sleep(self._settings.poll_interval_seconds)

    async def _tick_loop(self) -> None:
        tick_ms = self._settings.progress_tick_ms
        while not self._stopped:
            await asyncio.sleep(tick_ms / 1000)
            if not self._stopped:
                self.dispatch(ProgressTick(tick_ms))

    def _schedule_resync(self) -> None:
        async def _delayed() -> None:
            await asyncio.sleep(self._settings.sync_after_control_delay_seconds)
            await self.poll_once()

        task = asyncio.create_task(_delayed(), name="playback-resync")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _notify(self, level: str, message: str) -> None:
        if self._on_notice and message:
            self._on_notice(level, message)

    def _refuse(self, message: str, error_code: str) -> ActionResult[None]:
        self._notify("error", message)
        self.dispatch(SetError(message))
        return ActionResult.fail(message, error_code=error_code)

    async def _run_command(
        self,
        name: str,
        call: Callable[[], Awaitable[ActionResult[Any]]],
        optimistic: list[PlayerAction] | None = None,
    ) -> ActionResult[None]:
        for action in optimistic or []:
            self.dispatch(action)
        self.dispatch(SetSyncing(True))

        result = await call()
        if self._stopped:
            return ActionResult(
                is_success=result.is_success,
                message=result.message,
                error_code=result.error_code,
            )

        if result.is_success:
            logger.debug("Playback command %s succeeded", name)
            self._notify("success", result.message)
            await self.poll_once()
            self._schedule_resync()
        else:
            logger.info("Playback command %s failed: %s", name, result.message)
            self._notify("error", result.message)
            self.dispatch(SetError(result.message))
            await self.poll_once()
        return ActionResult(
            is_success=result.is_success,
            message=result.message,
            error_code=result.error_code,
        )

    async def _precheck(self) -> None:
        # Play/pause go ahead whatever this says; Spotify can pick a device on its own.
        # A fresh snapshot is folded in so the direction is picked from the remote truth.
        result = await self._gateway.get_playback_state()
        if not result.is_success:
            logger.debug("Pre-check before play/pause failed: %s", result.message)
        elif result.data is not None:
            self.dispatch(StateFromApi(result.data))

    async def play(self) -> ActionResult[None]:
        if self._state.is_playing:
            return ActionResult.ok(message="Already playing.")
        await self._precheck()
        return await self._run_command(
            "play", self._gateway.play, [SetPlayingOptimistic(True)]
        )

    async def pause(self) -> ActionResult[None]:
        if not self._state.is_playing:
            return ActionResult.ok(message="Already paused.")
        await self._precheck()
        return await self._run_command(
            "pause", self._gateway.pause, [SetPlayingOptimistic(False)]
        )

    async def toggle_play_pause(self) -> ActionResult[None]:
        await self._precheck()
        if self._state.is_playing:
            return await self._run_command(
                "pause", self._gateway.pause, [SetPlayingOptimistic(False)]
            )
        return await self._run_command(
            "play", self._gateway.play, [SetPlayingOptimistic(True)]
        )

    async def next_track(self) -> ActionResult[None]:
        if not self._state.has_active_device:
            return self._refuse(NO_DEVICE_MESSAGE, "no_active_device")
        return await self._run_command("next_track", self._gateway.next_track)

    async def previous_track(self) -> ActionResult[None]:
        if not self._state.has_active_device:
            return self._refuse(NO_DEVICE_MESSAGE, "no_active_device")
        return await self._run_command("previous_track", self._gateway.previous_track)

    async def seek(self, position_ms: int) -> ActionResult[None]:
        """Seek within the current track; out-of-range positions never reach Spotify."""
        track = self._state.track
        if track is None or not 0 <= position_ms <= track.duration_ms:
            return self._refuse(INVALID_SEEK_MESSAGE, "validation")
        if not self._state.has_active_device:
            return self._refuse(NO_DEVICE_MESSAGE, "no_active_device")
        return await self._run_command(
            "seek",
            lambda: self._gateway.seek(position_ms),
            [SetProgressLocal(position_ms)],
        )

    async def set_volume(self, volume_percent: int) -> ActionResult[None]:
        if not self._state.has_active_device:
            return self._refuse(NO_DEVICE_MESSAGE, "no_active_device")
        volume = max(0, min(100, volume_percent))
        return await self._run_command(
            "set_volume", lambda: self._gateway.set_volume(volume), [SetVolume(volume)]
        )

    async def toggle_shuffle(self) -> ActionResult[None]:
        if not self._state.has_active_device:
            return self._refuse(NO_DEVICE_MESSAGE, "no_active_device")
        new_state = not self._state.shuffle_state
        return await self._run_command(
            "toggle_shuffle",
            lambda: self._gateway.set_shuffle(new_state),
            [SetShuffle(new_state)],
        )

    async def set_repeat_mode(self, mode: RepeatState | str) -> ActionResult[None]:
        try:
            repeat = RepeatState(mode)
        except ValueError:
            return self._refuse(
                "Repeat mode must be one of: track, context, off.", "validation"
            )
        if not self._state.has_active_device:
            return self._refuse(NO_DEVICE_MESSAGE, "no_active_device")
        return await self._run_command(
            "set_repeat_mode",
            lambda: self._gateway.set_repeat(repeat),
            [SetRepeat(repeat)],
        )
