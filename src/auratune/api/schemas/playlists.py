"""API schemas for generation, saving and listing playlists."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from auratune.domain.entities import (
    ConfirmedTrack,
    CuratedTemplate,
    GenerationMethod,
    PlaylistPreview,
    PlaylistRecord,
)


class TrackSchema(BaseModel):
    """A validated catalog track as the client sees it."""

    catalog_id: str = Field(..., description="Spotify track ID")
    uri: str = Field(..., description="Spotify track URI")
    title: str
    artists: list[str] = Field(default_factory=list)
    album_name: str = ""
    album_art_url: str | None = None
    duration_ms: int = Field(default=0, ge=0)

    @classmethod
    def from_entity(cls, track: ConfirmedTrack) -> "TrackSchema":
        return cls(
            catalog_id=track.catalog_id,
            uri=track.uri,
            title=track.title,
            artists=list(track.artists),
            album_name=track.album_name,
            album_art_url=track.album_art_url,
            duration_ms=track.duration_ms,
        )

    def to_entity(self) -> ConfirmedTrack:
        return ConfirmedTrack(
            catalog_id=self.catalog_id,
            uri=self.uri,
            title=self.title,
            artists=list(self.artists),
            album_name=self.album_name,
            album_art_url=self.album_art_url,
            duration_ms=self.duration_ms,
        )


class TemplateGenerateRequest(BaseModel):
    """Request schema for template-based generation."""

    template_id: str = Field(..., min_length=1, description="Curated template ID")


class TrackMatchGenerateRequest(BaseModel):
    """Request schema for seed-track generation."""

    seed_track_id: str = Field(..., min_length=1, description="Spotify ID of the seed track")


class PreviewResponse(BaseModel):
    """Generated playlist preview, editable by the client before saving."""

    name: str
    description: str
    tracks: list[TrackSchema]
    total_tracks: int
    estimated_duration_ms: int
    generation_method: GenerationMethod | None = None
    generation_params: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_preview(
        cls, preview: PlaylistPreview, warnings: list[str] | None = None
    ) -> "PreviewResponse":
        return cls(
            name=preview.name,
            description=preview.description,
            tracks=[TrackSchema.from_entity(t) for t in preview.tracks],
            total_tracks=preview.total_tracks,
            estimated_duration_ms=preview.estimated_duration_ms,
            generation_method=preview.generation_method,
            generation_params=dict(preview.generation_params),
            warnings=list(warnings or []),
        )


# Name/description limits are checked in PlaylistCommitService, not by pydantic.
class SavePlaylistRequest(BaseModel):
    """Request schema for committing a preview to Spotify."""

    name: str = Field(..., description="Playlist name (1-100 characters)")
    description: str = Field(default="", description="Playlist description (max 300)")
    tracks: list[TrackSchema] = Field(default_factory=list)
    generation_method: GenerationMethod
    generation_params: dict[str, Any] = Field(default_factory=dict)


class SavePlaylistResponse(BaseModel):
    """Identifiers of the saved playlist."""

    message: str
    remote_playlist_id: str
    playlist_url: str
    record_id: str


class PlaylistRecordResponse(BaseModel):
    """One saved playlist from the user's history."""

    id: str
    remote_playlist_id: str
    name: str
    description: str | None
    generation_method: GenerationMethod
    generation_params: dict[str, Any]
    track_count: int
    duration_ms: int
    created_at: datetime

    @classmethod
    def from_entity(cls, record: PlaylistRecord) -> "PlaylistRecordResponse":
        return cls(
            id=record.id,
            remote_playlist_id=record.remote_playlist_id,
            name=record.name,
            description=record.description,
            generation_method=record.generation_method,
            generation_params=dict(record.generation_params),
            track_count=record.track_count,
            duration_ms=record.duration_ms,
            created_at=record.created_at,
        )


class TemplateResponse(BaseModel):
    """Curated template as listed to clients (system prompt stays server-side)."""

    id: str
    name: str
    description: str
    icon_url: str | None = None

    @classmethod
    def from_entity(cls, template: CuratedTemplate) -> "TemplateResponse":
        return cls(
            id=template.id,
            name=template.name,
            description=template.description,
            icon_url=template.icon_url,
        )
