"""User settings endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from auratune.api.dependencies import get_user_settings_service, require_user_id
from auratune.api.exception_handlers import raise_for_result
from auratune.application.services import UserSettingsService
from auratune.domain.entities import UserSettings

router = APIRouter()


class UserSettingsResponse(BaseModel):
    """Per-user generation preferences."""

    user_id: str
    default_playlist_track_count: int
    updated_at: datetime

    @classmethod
    def from_entity(cls, settings: UserSettings) -> "UserSettingsResponse":
        return cls(
            user_id=settings.user_id,
            default_playlist_track_count=settings.default_playlist_track_count,
            updated_at=settings.updated_at,
        )


class UserSettingsUpdate(BaseModel):
    """Request schema for updating user settings."""

    default_playlist_track_count: int = Field(
        ..., description="Tracks per generated playlist"
    )


@router.get("", response_model=UserSettingsResponse)
async def get_user_settings(
    user_id: str = Depends(require_user_id),
    service: UserSettingsService = Depends(get_user_settings_service),
) -> UserSettingsResponse:
    """Get the caller's settings, creating defaults on first access."""
    result = await service.get_or_create(user_id)
    raise_for_result(result)
    assert result.data is not None
    return UserSettingsResponse.from_entity(result.data)


@router.put("", response_model=UserSettingsResponse)
async def update_user_settings(
    body: UserSettingsUpdate,
    user_id: str = Depends(require_user_id),
    service: UserSettingsService = Depends(get_user_settings_service),
) -> UserSettingsResponse:
    """Update the default playlist track count."""
    result = await service.update_track_count(user_id, body.default_playlist_track_count)
    raise_for_result(result)
    assert result.data is not None
    return UserSettingsResponse.from_entity(result.data)
