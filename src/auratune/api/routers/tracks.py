"""Catalog track lookup endpoints (used to pick a seed track)."""

from fastapi import APIRouter, Depends, Query

from auratune.api.dependencies import get_spotify_client, require_access_token
from auratune.api.schemas.playlists import TrackSchema
from auratune.application.services.spotify_mapping import to_confirmed_track
from auratune.domain.ports import ISpotifyClient

router = APIRouter()


# Hey future me, Spotify errors are NOT caught here. SpotifyClient raises domain exceptions
# (AuthenticationError, RateLimitExceededError, EntityNotFoundException...) and the global
# handlers in exception_handlers.py turn them into 401/429/404.
@router.get("/search", response_model=list[TrackSchema])
async def search_tracks(
    q: str = Query(..., min_length=1, max_length=200, description="Search text"),
    limit: int = Query(10, ge=1, le=50),
    access_token: str = Depends(require_access_token),
    spotify: ISpotifyClient = Depends(get_spotify_client),
) -> list[TrackSchema]:
    """Search the Spotify catalog for tracks."""
    items = await spotify.search_tracks(q, access_token, limit=limit)
    return [TrackSchema.from_entity(to_confirmed_track(i)) for i in items if i.get("id")]


@router.get("/{track_id}", response_model=TrackSchema)
async def get_track(
    track_id: str,
    access_token: str = Depends(require_access_token),
    spotify: ISpotifyClient = Depends(get_spotify_client),
) -> TrackSchema:
    """Get one catalog track by Spotify ID."""
    item = await spotify.get_track(track_id, access_token)
    return TrackSchema.from_entity(to_confirmed_track(item))
