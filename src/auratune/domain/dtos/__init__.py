"""Data transfer objects passed across component boundaries."""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from auratune.domain.entities import ConfirmedTrack, GenerationMethod

T = TypeVar("T")


# Hey future me, ActionResult is THE return type of every service boundary (validator,
# orchestrator, commit, playback relay). Services never let exceptions escape to callers;
# they fold them into one of these. error_code is a short machine tag ("checking_yield",
# "record_inconsistency", ...) so the API layer can pick a status code without string matching.
@dataclass
class ActionResult(Generic[T]):
    """Uniform success/failure outcome."""

    is_success: bool
    message: str = ""
    data: T | None = None
    error_code: str | None = None
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def ok(
        cls,
        data: T | None = None,
        message: str = "",
        warnings: list[str] | None = None,
    ) -> "ActionResult[T]":
        return cls(
            is_success=True, message=message, data=data, warnings=warnings or []
        )

    @classmethod
    def fail(
        cls, message: str, error_code: str | None = None, data: T | None = None
    ) -> "ActionResult[T]":
        return cls(is_success=False, message=message, data=data, error_code=error_code)


@dataclass(frozen=True)
class AuthSession:
    """What the auth provider hands us: a bearer token and both user ids."""

    bearer_token: str | None
    external_user_id: str | None
    internal_user_id: str | None

    @property
    def is_complete(self) -> bool:
        return bool(
            self.bearer_token and self.external_user_id and self.internal_user_id
        )


@dataclass
class CommitRequest:
    """Everything needed to turn a preview into a Spotify playlist."""

    name: str
    tracks: list[ConfirmedTrack]
    generation_method: GenerationMethod
    description: str = ""
    generation_params: dict[str, Any] = field(default_factory=dict)

    @property
    def playable_tracks(self) -> list[ConfirmedTrack]:
        """Tracks that can actually be added (they carry a Spotify URI)."""
        return [track for track in self.tracks if track.uri]

    @property
    def duration_ms(self) -> int:
        return sum(track.duration_ms for track in self.playable_tracks)


@dataclass(frozen=True)
class CommitResult:
    """Identifiers of a successful commit."""

    remote_playlist_id: str
    playlist_url: str
    record_id: str


@dataclass(frozen=True)
class MetadataSuggestion:
    """Name/description pair produced by the naming prompt."""

    name: str
    description: str


__all__ = [
    "ActionResult",
    "AuthSession",
    "CommitRequest",
    "CommitResult",
    "MetadataSuggestion",
]
