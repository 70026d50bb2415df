"""Domain entities."""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4


# Hey future me, only CURATED_TEMPLATE and TRACK_MATCH have a generator today. The other
# values exist because records and the DB enum accept them, so don't drop them.
class GenerationMethod(str, Enum):
    """How a playlist was generated."""

    CURATED_TEMPLATE = "curated_template"
    TRACK_MATCH = "track_match"
    LISTENING_HABITS = "listening_habits"
    ARTIST_BASED = "artist_based"
    GENRE_BLEND = "genre_blend"


class RepeatState(str, Enum):
    """Spotify repeat modes."""

    TRACK = "track"
    CONTEXT = "context"
    OFF = "off"


@dataclass(frozen=True)
class SuggestedTrack:
    """A loose (title, artist) guess from the text generator.

    Never persisted; thrown away once validation has run.
    """

    title: str
    artist: str


@dataclass(frozen=True)
class ConfirmedTrack:
    """A suggestion that matched exactly one catalog entry."""

    catalog_id: str
    uri: str
    title: str
    artists: list[str] = field(default_factory=list)
    album_name: str = ""
    album_art_url: str | None = None
    duration_ms: int = 0

    @property
    def artist_names(self) -> str:
        """Artists joined for display and prompts."""
        return ", ".join(self.artists)


# Listen up, the preview is the ONE place where uniqueness is enforced as an invariant, not
# just a validator habit. __post_init__ refuses duplicates so nothing downstream can smuggle
# a repeated catalog id into a commit. total_tracks/estimated_duration_ms are derived, never set.
@dataclass
class PlaylistPreview:
    """Client-held result of a generation run, editable before save."""

    tracks: list[ConfirmedTrack]
    name: str
    description: str
    generation_method: GenerationMethod | None = None
    generation_params: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for track in self.tracks:
            if track.catalog_id in seen:
                raise ValueError(
                    f"Duplicate catalog id in preview: {track.catalog_id}"
                )
            seen.add(track.catalog_id)

    @property
    def total_tracks(self) -> int:
        return len(self.tracks)

    @property
    def estimated_duration_ms(self) -> int:
        return sum(track.duration_ms for track in self.tracks)

    def rename(self, name: str, description: str | None = None) -> None:
        """Apply a user edit to name and (optionally) description."""
        self.name = name
        if description is not None:
            self.description = description


@dataclass
class PlaylistRecord:
    """Durable record of a playlist committed to Spotify."""

    owner_id: str
    remote_playlist_id: str
    name: str
    generation_method: GenerationMethod
    description: str | None = None
    generation_params: dict[str, Any] = field(default_factory=dict)
    track_count: int = 0
    duration_ms: int = 0
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if not self.remote_playlist_id:
            raise ValueError("PlaylistRecord requires a remote playlist id")
        if self.track_count < 0 or self.duration_ms < 0:
            raise ValueError("track_count and duration_ms must be non-negative")


@dataclass
class CuratedTemplate:
    """A stored playlist theme with its own system instruction."""

    id: str
    name: str
    description: str
    system_prompt: str
    icon_url: str | None = None
    is_active: bool = True


@dataclass
class SystemPrompt:
    """A named system instruction (e.g. "track-match", "playlist-naming")."""

    id: str
    name: str
    content: str
    is_active: bool = True


@dataclass
class UserSettings:
    """Per-user generation preferences."""

    user_id: str
    default_playlist_track_count: int = 20
    id: str = field(default_factory=lambda: str(uuid4()))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class PlayerTrackInfo:
    """Track shown by the player."""

    id: str
    uri: str
    name: str
    artists: str
    album_name: str
    album_art_url: str | None
    duration_ms: int


@dataclass(frozen=True)
class PlaybackDevice:
    """A Spotify Connect device."""

    id: str | None
    name: str
    type: str
    is_active: bool = False
    is_restricted: bool = False
    volume_percent: int | None = None


@dataclass(frozen=True)
class PlaybackSnapshot:
    """One parsed answer from the remote playback-state endpoint."""

    track: PlayerTrackInfo | None
    is_playing: bool
    progress_ms: int | None
    shuffle_state: bool
    repeat_state: RepeatState
    device: PlaybackDevice | None


# Hey future me, PlaybackState is FROZEN on purpose. Only the reducer in
# application/player/state.py builds new ones (via dataclasses.replace); the UI gets the
# same object the reducer returned and can't poke at fields.
@dataclass(frozen=True)
class PlaybackState:
    """Player transport state owned by the synchronizer."""

    track: PlayerTrackInfo | None = None
    is_playing: bool = False
    progress_ms: int | None = None
    volume_percent: int = 50
    shuffle_state: bool = False
    repeat_state: RepeatState = RepeatState.OFF
    device_id: str | None = None
    device_name: str | None = None
    device_type: str | None = None
    has_active_device: bool = False
    error: str | None = None
    is_syncing: bool = True
    # Consecutive failed polls; reset by any successful snapshot.
    error_streak: int = 0

    def evolve(self, **changes: Any) -> "PlaybackState":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


__all__ = [
    "ConfirmedTrack",
    "CuratedTemplate",
    "GenerationMethod",
    "PlaybackDevice",
    "PlaybackSnapshot",
    "PlaybackState",
    "PlayerTrackInfo",
    "PlaylistPreview",
    "PlaylistRecord",
    "RepeatState",
    "SuggestedTrack",
    "SystemPrompt",
    "UserSettings",
]
