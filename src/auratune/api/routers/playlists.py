"""Saved playlist history endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query

from auratune.api.dependencies import get_playlist_record_repository, require_user_id
from auratune.api.schemas.playlists import PlaylistRecordResponse
from auratune.infrastructure.persistence import PlaylistRecordRepository

router = APIRouter()


@router.get("", response_model=list[PlaylistRecordResponse])
async def list_playlists(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(require_user_id),
    repository: PlaylistRecordRepository = Depends(get_playlist_record_repository),
) -> list[PlaylistRecordResponse]:
    """List the caller's saved playlists, newest first."""
    records = await repository.list_by_owner(user_id, limit=limit, offset=offset)
    return [PlaylistRecordResponse.from_entity(record) for record in records]


@router.get("/{remote_playlist_id}", response_model=PlaylistRecordResponse)
async def get_playlist(
    remote_playlist_id: str,
    user_id: str = Depends(require_user_id),
    repository: PlaylistRecordRepository = Depends(get_playlist_record_repository),
) -> PlaylistRecordResponse:
    """Get one saved playlist by its Spotify ID.

    Other users' records are reported as not found.
    """
    record = await repository.get_by_remote_id(remote_playlist_id)
    if record is None or record.owner_id != user_id:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return PlaylistRecordResponse.from_entity(record)
