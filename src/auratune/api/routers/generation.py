"""Playlist generation and save endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from auratune.api.dependencies import (
    get_auth_session,
    get_commit_service,
    get_generation_service,
    get_user_settings_service,
)
from auratune.api.exception_handlers import raise_for_result, status_for_error_code
from auratune.api.schemas.playlists import (
    PreviewResponse,
    SavePlaylistRequest,
    SavePlaylistResponse,
    TemplateGenerateRequest,
    TrackMatchGenerateRequest,
)
from auratune.application.services import (
    PlaylistCommitService,
    PlaylistGenerationService,
    UserSettingsService,
)
from auratune.domain.dtos import ActionResult, AuthSession, CommitRequest
from auratune.domain.entities import PlaylistPreview

router = APIRouter()
logger = logging.getLogger(__name__)


def _preview_or_raise(result: ActionResult[PlaylistPreview]) -> PreviewResponse:
    if result.is_success and result.data is not None:
        return PreviewResponse.from_preview(result.data, result.warnings)

    detail: dict[str, Any] = {"message": result.message, "error_code": result.error_code}
    if result.data is not None:
        # Low-yield runs still return what was found so the client can offer to save it.
        detail["partial"] = PreviewResponse.from_preview(result.data).model_dump(mode="json")
    raise HTTPException(status_code=status_for_error_code(result.error_code), detail=detail)


# Yo, the settings row normally exists from the first /settings visit, but a brand-new user
# may hit generate first. Creating the defaults here keeps generation from failing with
# "No user settings found" for someone who simply never opened the settings page.
async def _ensure_settings(session: AuthSession, settings_service: UserSettingsService) -> None:
    if session.internal_user_id:
        await settings_service.get_or_create(session.internal_user_id)


@router.post("/template", response_model=PreviewResponse)
async def generate_from_template(
    body: TemplateGenerateRequest,
    session: AuthSession = Depends(get_auth_session),
    service: PlaylistGenerationService = Depends(get_generation_service),
    settings_service: UserSettingsService = Depends(get_user_settings_service),
) -> PreviewResponse:
    """Generate a playlist preview from a curated template.

    Args:
        body: Template ID
        session: Caller's auth session
        service: Generation pipeline

    Returns:
        Preview with validated tracks, name, description and warnings
    """
    await _ensure_settings(session, settings_service)
    result = await service.generate_from_template(session, body.template_id)
    return _preview_or_raise(result)


@router.post("/track-match", response_model=PreviewResponse)
async def generate_from_track_match(
    body: TrackMatchGenerateRequest,
    session: AuthSession = Depends(get_auth_session),
    service: PlaylistGenerationService = Depends(get_generation_service),
    settings_service: UserSettingsService = Depends(get_user_settings_service),
) -> PreviewResponse:
    """Generate a playlist preview of tracks similar to a seed track."""
    await _ensure_settings(session, settings_service)
    result = await service.generate_from_track_match(session, body.seed_track_id)
    return _preview_or_raise(result)


@router.post("/save", response_model=SavePlaylistResponse, status_code=201)
async def save_playlist(
    body: SavePlaylistRequest,
    session: AuthSession = Depends(get_auth_session),
    service: PlaylistCommitService = Depends(get_commit_service),
) -> SavePlaylistResponse:
    """Save an (edited) preview as a private Spotify playlist.

    Failures after the playlist was created carry its Spotify ID in the message.
    """
    request = CommitRequest(
        name=body.name,
        description=body.description,
        tracks=[track.to_entity() for track in body.tracks],
        generation_method=body.generation_method,
        generation_params=body.generation_params,
    )
    result = await service.commit(session, request)
    raise_for_result(result)
    if result.data is None:
        raise HTTPException(status_code=500, detail="Save returned no result.")
    return SavePlaylistResponse(
        message=result.message,
        remote_playlist_id=result.data.remote_playlist_id,
        playlist_url=result.data.playlist_url,
        record_id=result.data.record_id,
    )
