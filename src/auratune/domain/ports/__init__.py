"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from typing import Any

from auratune.domain.dtos import ActionResult
from auratune.domain.entities import (
    CuratedTemplate,
    PlaybackSnapshot,
    PlaylistRecord,
    RepeatState,
    SystemPrompt,
    UserSettings,
)


# Hey future me, ISpotifyClient is the catalog + playback capability surface. It speaks raw
# Spotify JSON (dicts) just like the HTTP client does; mapping into entities happens in the
# application layer (see application/services/spotify_mapping.py). Every method takes the
# bearer token explicitly because the client is shared across users.
class ISpotifyClient(ABC):
    """Port for Spotify Web API operations."""

    @abstractmethod
    async def search_tracks(
        self, query: str, access_token: str, limit: int = 1
    ) -> list[dict[str, Any]]:
        """Search the catalog for tracks.

        Args:
            query: Free-text query
            access_token: OAuth access token
            limit: Maximum results (1-50)

        Returns:
            Spotify track objects, best match first
        """
        pass

    @abstractmethod
    async def get_track(self, track_id: str, access_token: str) -> dict[str, Any]:
        """Fetch one track by Spotify id."""
        pass

    @abstractmethod
    async def create_playlist(
        self,
        user_id: str,
        name: str,
        access_token: str,
        description: str = "",
        public: bool = False,
    ) -> dict[str, Any]:
        """Create a playlist owned by ``user_id``."""
        pass

    @abstractmethod
    async def add_tracks_to_playlist(
        self, playlist_id: str, track_uris: list[str], access_token: str
    ) -> dict[str, Any]:
        """Append up to 100 track URIs to a playlist."""
        pass

    @abstractmethod
    async def get_user_top_items(
        self,
        item_type: str,
        access_token: str,
        time_range: str = "medium_term",
        limit: int = 20,
    ) -> dict[str, Any]:
        """Get the user's top artists or tracks."""
        pass

    @abstractmethod
    async def get_playback_state(self, access_token: str) -> dict[str, Any] | None:
        """Current playback state, or None when nothing is playing anywhere."""
        pass

    @abstractmethod
    async def get_devices(self, access_token: str) -> list[dict[str, Any]]:
        """List Spotify Connect devices."""
        pass

    @abstractmethod
    async def transfer_playback(
        self, device_id: str, access_token: str, play: bool = False
    ) -> None:
        """Move playback to another device."""
        pass

    @abstractmethod
    async def get_recently_played(
        self, access_token: str, limit: int = 1
    ) -> list[dict[str, Any]]:
        """Recently played history items (newest first)."""
        pass

    @abstractmethod
    async def play(
        self,
        access_token: str,
        device_id: str | None = None,
        uris: list[str] | None = None,
        position_ms: int | None = None,
    ) -> None:
        """Start or resume playback."""
        pass

    @abstractmethod
    async def pause(self, access_token: str, device_id: str | None = None) -> None:
        """Pause playback."""
        pass

    @abstractmethod
    async def next_track(
        self, access_token: str, device_id: str | None = None
    ) -> None:
        """Skip to the next track."""
        pass

    @abstractmethod
    async def previous_track(
        self, access_token: str, device_id: str | None = None
    ) -> None:
        """Skip to the previous track."""
        pass

    @abstractmethod
    async def seek(
        self, position_ms: int, access_token: str, device_id: str | None = None
    ) -> None:
        """Seek within the current track."""
        pass

    @abstractmethod
    async def set_volume(
        self, volume_percent: int, access_token: str, device_id: str | None = None
    ) -> None:
        """Set device volume (0-100)."""
        pass

    @abstractmethod
    async def set_shuffle(
        self, state: bool, access_token: str, device_id: str | None = None
    ) -> None:
        """Toggle shuffle."""
        pass

    @abstractmethod
    async def set_repeat(
        self, state: str, access_token: str, device_id: str | None = None
    ) -> None:
        """Set repeat mode (track, context, off)."""
        pass


class ITextGenerator(ABC):
    """Port for the LLM that writes song suggestions and playlist names."""

    @abstractmethod
    async def generate(self, system_instruction: str, user_instruction: str) -> str:
        """Return the model's raw text answer.

        Raises:
            ExternalServiceError: If the upstream call fails
        """
        pass


class IPlaylistRecordRepository(ABC):
    """Repository interface for committed playlist records."""

    @abstractmethod
    async def add(self, record: PlaylistRecord) -> PlaylistRecord:
        """Persist a new record.

        Raises:
            DuplicateEntityException: If the remote playlist id is already recorded
        """
        pass

    @abstractmethod
    async def get_by_remote_id(self, remote_playlist_id: str) -> PlaylistRecord | None:
        """Look a record up by Spotify playlist id."""
        pass

    @abstractmethod
    async def list_by_owner(
        self, owner_id: str, limit: int = 50, offset: int = 0
    ) -> list[PlaylistRecord]:
        """List a user's records, newest first."""
        pass


class IUserSettingsRepository(ABC):
    """Repository interface for per-user settings."""

    @abstractmethod
    async def get(self, user_id: str) -> UserSettings | None:
        pass

    @abstractmethod
    async def create_defaults(self, user_id: str) -> UserSettings:
        pass

    @abstractmethod
    async def update(self, settings: UserSettings) -> UserSettings:
        pass


class ICuratedTemplateRepository(ABC):
    """Repository interface for curated templates."""

    @abstractmethod
    async def get(self, template_id: str) -> CuratedTemplate | None:
        pass

    @abstractmethod
    async def list_active(self) -> list[CuratedTemplate]:
        pass

    @abstractmethod
    async def add(self, template: CuratedTemplate) -> None:
        pass


class ISystemPromptRepository(ABC):
    """Repository interface for named system prompts."""

    @abstractmethod
    async def get_active_by_name(self, name: str) -> SystemPrompt | None:
        pass

    @abstractmethod
    async def add(self, prompt: SystemPrompt) -> None:
        pass


# Yo, the synchronizer only ever talks to this. PlaybackControlService implements it for one
# auth session, tests hand in a fake. Every call returns an ActionResult; error_code
# "no_active_device" is how "nothing to control" is told apart from a real failure.
class IPlaybackGateway(ABC):
    """Playback endpoints bound to one user session."""

    @abstractmethod
    async def get_playback_state(self) -> ActionResult[PlaybackSnapshot]:
        """Fetch remote state. A successful result with data None means idle."""
        pass

    @abstractmethod
    async def play(self) -> ActionResult[None]:
        pass

    @abstractmethod
    async def pause(self) -> ActionResult[None]:
        pass

    @abstractmethod
    async def next_track(self) -> ActionResult[None]:
        pass

    @abstractmethod
    async def previous_track(self) -> ActionResult[None]:
        pass

    @abstractmethod
    async def seek(self, position_ms: int) -> ActionResult[None]:
        pass

    @abstractmethod
    async def set_volume(self, volume_percent: int) -> ActionResult[None]:
        pass

    @abstractmethod
    async def set_shuffle(self, state: bool) -> ActionResult[None]:
        pass

    @abstractmethod
    async def set_repeat(self, state: RepeatState) -> ActionResult[None]:
        pass


__all__ = [
    "ICuratedTemplateRepository",
    "IPlaybackGateway",
    "IPlaylistRecordRepository",
    "ISpotifyClient",
    "ISystemPromptRepository",
    "ITextGenerator",
    "IUserSettingsRepository",
]
