"""Playback control endpoints (relay to the Spotify player API)."""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from auratune.api.dependencies import get_playback_service
from auratune.api.exception_handlers import raise_for_result
from auratune.application.services import PlaybackControlService
from auratune.domain.dtos import ActionResult
from auratune.domain.entities import PlaybackSnapshot, RepeatState

router = APIRouter()


class SeekRequest(BaseModel):
    position_ms: int = Field(..., ge=0)


class VolumeRequest(BaseModel):
    volume_percent: int = Field(..., description="0-100")


class ShuffleRequest(BaseModel):
    state: bool


class RepeatRequest(BaseModel):
    state: RepeatState


def _snapshot_to_dict(snapshot: PlaybackSnapshot | None) -> dict[str, Any] | None:
    if snapshot is None:
        return None
    track = snapshot.track
    device = snapshot.device
    return {
        "is_playing": snapshot.is_playing,
        "progress_ms": snapshot.progress_ms,
        "shuffle_state": snapshot.shuffle_state,
        "repeat_state": snapshot.repeat_state.value,
        "track": None
        if track is None
        else {
            "id": track.id,
            "uri": track.uri,
            "name": track.name,
            "artists": track.artists,
            "album_name": track.album_name,
            "album_art_url": track.album_art_url,
            "duration_ms": track.duration_ms,
        },
        "device": None
        if device is None
        else {
            "id": device.id,
            "name": device.name,
            "type": device.type,
            "is_active": device.is_active,
            "volume_percent": device.volume_percent,
        },
    }


def _command_response(result: ActionResult[None]) -> dict[str, Any]:
    raise_for_result(result)
    return {"success": True, "message": result.message}


# Yo, this is polled every second by the player UI, so RequestLoggingMiddleware logs it at
# DEBUG only (see QUIET_PATHS). "playback": null means nothing is playing right now.
@router.get("/state")
async def get_playback_state(
    service: PlaybackControlService = Depends(get_playback_service),
) -> dict[str, Any]:
    """Current playback state, or ``{"playback": null}`` when idle."""
    result = await service.get_playback_state()
    raise_for_result(result)
    return {"playback": _snapshot_to_dict(result.data), "message": result.message}


@router.post("/play")
async def play(
    service: PlaybackControlService = Depends(get_playback_service),
) -> dict[str, Any]:
    """Start or resume playback, choosing a device when none is active."""
    return _command_response(await service.play())


@router.post("/pause")
async def pause(
    service: PlaybackControlService = Depends(get_playback_service),
) -> dict[str, Any]:
    return _command_response(await service.pause())


@router.post("/toggle")
async def toggle_play_pause(
    service: PlaybackControlService = Depends(get_playback_service),
) -> dict[str, Any]:
    return _command_response(await service.toggle_play_pause())


@router.post("/next")
async def next_track(
    service: PlaybackControlService = Depends(get_playback_service),
) -> dict[str, Any]:
    return _command_response(await service.next_track())


@router.post("/previous")
async def previous_track(
    service: PlaybackControlService = Depends(get_playback_service),
) -> dict[str, Any]:
    return _command_response(await service.previous_track())


@router.put("/seek")
async def seek(
    body: SeekRequest,
    service: PlaybackControlService = Depends(get_playback_service),
) -> dict[str, Any]:
    return _command_response(await service.seek(body.position_ms))


@router.put("/volume")
async def set_volume(
    body: VolumeRequest,
    service: PlaybackControlService = Depends(get_playback_service),
) -> dict[str, Any]:
    return _command_response(await service.set_volume(body.volume_percent))


@router.put("/shuffle")
async def set_shuffle(
    body: ShuffleRequest,
    service: PlaybackControlService = Depends(get_playback_service),
) -> dict[str, Any]:
    return _command_response(await service.set_shuffle(body.state))


@router.put("/repeat")
async def set_repeat(
    body: RepeatRequest,
    service: PlaybackControlService = Depends(get_playback_service),
) -> dict[str, Any]:
    return _command_response(await service.set_repeat(body.state))
