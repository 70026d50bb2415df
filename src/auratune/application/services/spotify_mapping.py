"""Convert raw Spotify JSON into domain entities."""

from typing import Any

from auratune.domain.entities import (
    ConfirmedTrack,
    PlaybackDevice,
    PlaybackSnapshot,
    PlayerTrackInfo,
    RepeatState,
)


def _first_image_url(album: dict[str, Any] | None) -> str | None:
    images = (album or {}).get("images") or []
    return images[0].get("url") if images else None


def to_confirmed_track(item: dict[str, Any]) -> ConfirmedTrack:
    """Build a ConfirmedTrack from a Spotify track object."""
    album = item.get("album") or {}
    return ConfirmedTrack(
        catalog_id=item["id"],
        uri=item.get("uri") or "",
        title=item.get("name") or "",
        artists=[a.get("name", "") for a in item.get("artists") or [] if a.get("name")],
        album_name=album.get("name") or "",
        album_art_url=_first_image_url(album),
        duration_ms=int(item.get("duration_ms") or 0),
    )


def to_player_track(item: dict[str, Any] | None) -> PlayerTrackInfo | None:
    """Build the player's track view; None for missing or non-track items (e.g. ads)."""
    if not item or not item.get("id"):
        return None
    album = item.get("album") or {}
    return PlayerTrackInfo(
        id=item["id"],
        uri=item.get("uri") or "",
        name=item.get("name") or "",
        artists=", ".join(
            a.get("name", "") for a in item.get("artists") or [] if a.get("name")
        ),
        album_name=album.get("name") or "",
        album_art_url=_first_image_url(album),
        duration_ms=int(item.get("duration_ms") or 0),
    )


def to_device(payload: dict[str, Any] | None) -> PlaybackDevice | None:
    """Build a PlaybackDevice from a Spotify device object."""
    if not payload:
        return None
    return PlaybackDevice(
        id=payload.get("id"),
        name=payload.get("name") or "Unknown device",
        type=payload.get("type") or "Unknown",
        is_active=bool(payload.get("is_active")),
        is_restricted=bool(payload.get("is_restricted")),
        volume_percent=payload.get("volume_percent"),
    )


def to_playback_snapshot(payload: dict[str, Any]) -> PlaybackSnapshot:
    """Build a PlaybackSnapshot from a ``GET /me/player`` body."""
    repeat_raw = payload.get("repeat_state") or RepeatState.OFF.value
    try:
        repeat_state = RepeatState(repeat_raw)
    except ValueError:
        repeat_state = RepeatState.OFF
    progress = payload.get("progress_ms")
    return PlaybackSnapshot(
        track=to_player_track(payload.get("item")),
        is_playing=bool(payload.get("is_playing")),
        progress_ms=int(progress) if progress is not None else None,
        shuffle_state=bool(payload.get("shuffle_state")),
        repeat_state=repeat_state,
        device=to_device(payload.get("device")),
    )
