"""Spotify playback relay for one authenticated user.

Every method returns an ActionResult. Permanent Spotify errors (no device, Premium
required, expired token) are translated into user-facing messages with a short
``error_code`` so the synchronizer and the API layer can react without parsing text.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from auratune.application.services.spotify_mapping import to_playback_snapshot
from auratune.domain.dtos import ActionResult, AuthSession
from auratune.domain.entities import PlaybackSnapshot, RepeatState
from auratune.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DomainException,
    EntityNotFoundException,
    NoActiveDeviceError,
    PremiumRequiredError,
    RateLimitExceededError,
    ValidationException,
)
from auratune.domain.ports import IPlaybackGateway, ISpotifyClient

logger = logging.getLogger(__name__)

OPEN_PLAYER_MESSAGE = (
    "Please open Spotify Web Player (open.spotify.com) and start playing a track first."
)
START_PLAYBACK_FIRST_MESSAGE = "No active device found. Please start playback first."
NO_TRACK_TO_PLAY_MESSAGE = "No track available to play. Please select a track in Spotify first."


def _failure(error: Exception, action: str) -> ActionResult[Any]:
    """Translate an upstream exception into a failed ActionResult."""
    if isinstance(error, NoActiveDeviceError):
        return ActionResult.fail(error.message, error_code="no_active_device")
    if isinstance(error, PremiumRequiredError):
        return ActionResult.fail(error.message, error_code="premium_required")
    if isinstance(error, AuthenticationError):
        return ActionResult.fail(error.message, error_code="unauthenticated")
    if isinstance(error, AuthorizationError):
        return ActionResult.fail(error.message, error_code="forbidden")
    if isinstance(error, RateLimitExceededError):
        return ActionResult.fail(error.message, error_code="rate_limited")
    if isinstance(error, EntityNotFoundException):
        return ActionResult.fail(error.message, error_code="not_found")
    if isinstance(error, ValidationException):
        return ActionResult.fail(error.message, error_code="validation")
    if isinstance(error, DomainException):
        return ActionResult.fail(error.message, error_code="upstream")
    logger.error("Transport failure in %s: %s", action, error)
    return ActionResult.fail(
        f"An unexpected error occurred in {action}: {type(error).__name__}",
        error_code="upstream",
    )


class PlaybackControlService(IPlaybackGateway):
    """IPlaybackGateway bound to one AuthSession."""

    def __init__(self, spotify_client: ISpotifyClient, session: AuthSession) -> None:
        self._spotify = spotify_client
        self._session = session

    @property
    def _token(self) -> str:
        return self._session.bearer_token or ""

    async def _guarded(
        self,
        action: str,
        call: Callable[[], Awaitable[Any]],
        message: str = "",
    ) -> ActionResult[None]:
        if not self._session.bearer_token:
            return ActionResult.fail("User not authenticated.", error_code="unauthenticated")
        try:
            await call()
        except (DomainException, httpx.HTTPError) as e:
            return _failure(e, action)
        return ActionResult.ok(message=message)

    async def get_playback_state(self) -> ActionResult[PlaybackSnapshot]:
        """Fetch the current playback state; ``data`` is None when nothing is playing."""
        if not self._session.bearer_token:
            return ActionResult.fail("User not authenticated.", error_code="unauthenticated")
        try:
            payload = await self._spotify.get_playback_state(self._token)
        except (DomainException, httpx.HTTPError) as e:
            return _failure(e, "get_playback_state")
        if not payload:
            return ActionResult.ok(None, message="No active playback.")
        return ActionResult.ok(to_playback_snapshot(payload))

    async def _pick_device(self, current: dict[str, Any] | None) -> dict[str, Any] | None:
        """Active device, else first unrestricted, else first; transfer if inactive."""
        if current and current.get("is_active") and current.get("id"):
            return current

        devices = await self._spotify.get_devices(self._token)
        if not devices:
            return None
        target = next((d for d in devices if d.get("is_active")), None)
        if target is None:
            target = next((d for d in devices if not d.get("is_restricted")), devices[0])
        if not target.get("id"):
            return None

        if not target.get("is_active"):
            logger.info("Transferring playback to %s", target.get("name"))
            await self._spotify.transfer_playback(target["id"], self._token, play=False)
        return target

    async def play(self) -> ActionResult[None]:
        """
        Start or resume playback.

        Picks a device (transferring to it when needed) and, when nothing is loaded,
        starts the most recently played track.
        """
        if not self._session.bearer_token:
            return ActionResult.fail("User not authenticated.", error_code="unauthenticated")
        try:
            state = await self._spotify.get_playback_state(self._token) or {}
            if state.get("is_playing"):
                return ActionResult.ok(message="Already playing.")

            device = await self._pick_device(state.get("device"))
            if device is None:
                return ActionResult.fail(OPEN_PLAYER_MESSAGE, error_code="no_active_device")

            if state.get("item"):
                await self._spotify.play(self._token, device_id=device["id"])
            else:
                recent = await self._spotify.get_recently_played(self._token, limit=1)
                if not recent:
                    return ActionResult.fail(NO_TRACK_TO_PLAY_MESSAGE, error_code="no_track")
                uri = (recent[0].get("track") or {}).get("uri")
                if not uri:
                    return ActionResult.fail(NO_TRACK_TO_PLAY_MESSAGE, error_code="no_track")
                await self._spotify.play(self._token, device_id=device["id"], uris=[uri])
        except (DomainException, httpx.HTTPError) as e:
            return _failure(e, "play")
        return ActionResult.ok(message="Playback started successfully.")

    async def pause(self) -> ActionResult[None]:
        if not self._session.bearer_token:
            return ActionResult.fail("User not authenticated.", error_code="unauthenticated")
        try:
            state = await self._spotify.get_playback_state(self._token) or {}
            if state and not state.get("is_playing"):
                return ActionResult.ok(message="Already paused.")
            device_id = (state.get("device") or {}).get("id")
            await self._spotify.pause(self._token, device_id=device_id)
        except (DomainException, httpx.HTTPError) as e:
            return _failure(e, "pause")
        return ActionResult.ok(message="Playback paused successfully.")

    async def toggle_play_pause(self) -> ActionResult[None]:
        """Pause when playing, otherwise play."""
        if not self._session.bearer_token:
            return ActionResult.fail("User not authenticated.", error_code="unauthenticated")
        try:
            state = await self._spotify.get_playback_state(self._token) or {}
        except (DomainException, httpx.HTTPError) as e:
            return _failure(e, "toggle_play_pause")
        return await (self.pause() if state.get("is_playing") else self.play())

    async def _active_device_id(self) -> str | None:
        state = await self._spotify.get_playback_state(self._token) or {}
        return (state.get("device") or {}).get("id")

    async def _skip(self, action: str, forward: bool) -> ActionResult[None]:
        if not self._session.bearer_token:
            return ActionResult.fail("User not authenticated.", error_code="unauthenticated")
        try:
            device_id = await self._active_device_id()
            if not device_id:
                return ActionResult.fail(
                    START_PLAYBACK_FIRST_MESSAGE, error_code="no_active_device"
                )
            if forward:
                await self._spotify.next_track(self._token, device_id=device_id)
            else:
                await self._spotify.previous_track(self._token, device_id=device_id)
        except (DomainException, httpx.HTTPError) as e:
            return _failure(e, action)
        return ActionResult.ok(message="Skipped track.")

    async def next_track(self) -> ActionResult[None]:
        return await self._skip("next_track", forward=True)

    async def previous_track(self) -> ActionResult[None]:
        return await self._skip("previous_track", forward=False)

    async def seek(self, position_ms: int) -> ActionResult[None]:
        if position_ms < 0:
            return ActionResult.fail("Invalid seek position.", error_code="validation")
        return await self._guarded(
            "seek", lambda: self._spotify.seek(position_ms, self._token)
        )

    async def set_volume(self, volume_percent: int) -> ActionResult[None]:
        if not 0 <= volume_percent <= 100:
            return ActionResult.fail(
                "Volume must be between 0 and 100.", error_code="validation"
            )
        return await self._guarded(
            "set_volume", lambda: self._spotify.set_volume(volume_percent, self._token)
        )

    async def set_shuffle(self, state: bool) -> ActionResult[None]:
        return await self._guarded(
            "set_shuffle", lambda: self._spotify.set_shuffle(state, self._token)
        )

    async def set_repeat(self, state: RepeatState) -> ActionResult[None]:
        try:
            mode = RepeatState(state)
        except ValueError:
            return ActionResult.fail(
                "Repeat mode must be one of: track, context, off.",
                error_code="validation",
            )
        return await self._guarded(
            "set_repeat", lambda: self._spotify.set_repeat(mode.value, self._token)
        )
