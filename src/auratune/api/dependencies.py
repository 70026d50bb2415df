"""Dependency injection for API endpoints."""

import logging
from collections.abc import AsyncGenerator
from typing import cast

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from auratune.application.services import (
    PlaybackControlService,
    PlaylistCommitService,
    PlaylistGenerationService,
    SuggestionService,
    TrackValidator,
    UserSettingsService,
)
from auratune.config import Settings
from auratune.domain.dtos import AuthSession
from auratune.domain.ports import ISpotifyClient, ITextGenerator
from auratune.infrastructure.persistence import (
    CuratedTemplateRepository,
    Database,
    PlaylistRecordRepository,
    SystemPromptRepository,
    UserSettingsRepository,
)

logger = logging.getLogger(__name__)


# Hey future me - this yields a request-scoped DB session via session_scope(), which commits
# on success and rolls back on error. Use it in endpoint params like
# "session: AsyncSession = Depends(get_db_session)".
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session from app state."""
    db: Database = request.app.state.db
    async with db.session_scope() as session:
        yield session


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with."""
    return cast(Settings, request.app.state.settings)


def get_spotify_client(request: Request) -> ISpotifyClient:
    """Shared SpotifyClient created in the lifespan.

    Raises:
        HTTPException: 503 if the client was not initialized
    """
    if not hasattr(request.app.state, "spotify_client"):
        raise HTTPException(status_code=503, detail="Spotify client not initialized")
    return cast(ISpotifyClient, request.app.state.spotify_client)


def get_text_generator(request: Request) -> ITextGenerator:
    """Shared OpenRouter-backed text generator created in the lifespan."""
    if not hasattr(request.app.state, "text_generator"):
        raise HTTPException(status_code=503, detail="Text generator not initialized")
    return cast(ITextGenerator, request.app.state.text_generator)


def parse_bearer_token(authorization: str) -> str:
    """Strip a case-insensitive "Bearer " prefix from an Authorization header."""
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return authorization.strip()


# Yo, the auth provider (OAuth login) lives OUTSIDE this service. Callers hand us what it
# produced: the Spotify access token as a bearer token plus both user ids as headers. We only
# assemble the AuthSession here; the services check is_complete and report a friendly message,
# so an incomplete session is NOT rejected at this layer.
async def get_auth_session(
    authorization: str | None = Header(None),
    x_spotify_user_id: str | None = Header(None),
    x_user_id: str | None = Header(None),
) -> AuthSession:
    """Build the AuthSession from request headers."""
    token = None
    if authorization and authorization.strip():
        token = parse_bearer_token(authorization) or None
    return AuthSession(
        bearer_token=token,
        external_user_id=(x_spotify_user_id or "").strip() or None,
        internal_user_id=(x_user_id or "").strip() or None,
    )


async def require_access_token(
    session: AuthSession = Depends(get_auth_session),
) -> str:
    """Bearer token or 401."""
    if not session.bearer_token:
        raise HTTPException(status_code=401, detail="Missing Spotify access token.")
    return session.bearer_token


async def require_user_id(session: AuthSession = Depends(get_auth_session)) -> str:
    """Internal user id or 401."""
    if not session.internal_user_id:
        raise HTTPException(
            status_code=401,
            detail="User session not found or incomplete. Please log in again.",
        )
    return session.internal_user_id


def get_playlist_record_repository(
    session: AsyncSession = Depends(get_db_session),
) -> PlaylistRecordRepository:
    """Get playlist record repository instance."""
    return PlaylistRecordRepository(session)


def get_user_settings_repository(
    session: AsyncSession = Depends(get_db_session),
) -> UserSettingsRepository:
    """Get user settings repository instance."""
    return UserSettingsRepository(session)


def get_template_repository(
    session: AsyncSession = Depends(get_db_session),
) -> CuratedTemplateRepository:
    """Get curated template repository instance."""
    return CuratedTemplateRepository(session)


def get_prompt_repository(
    session: AsyncSession = Depends(get_db_session),
) -> SystemPromptRepository:
    """Get system prompt repository instance."""
    return SystemPromptRepository(session)


def get_user_settings_service(
    repository: UserSettingsRepository = Depends(get_user_settings_repository),
    settings: Settings = Depends(get_app_settings),
) -> UserSettingsService:
    return UserSettingsService(repository, settings.generation)


# Listen up, the generation service is assembled per request: repositories share the request's
# DB session, while the Spotify client and text generator are app-wide singletons.
def get_generation_service(
    spotify_client: ISpotifyClient = Depends(get_spotify_client),
    text_generator: ITextGenerator = Depends(get_text_generator),
    template_repository: CuratedTemplateRepository = Depends(get_template_repository),
    prompt_repository: SystemPromptRepository = Depends(get_prompt_repository),
    settings_repository: UserSettingsRepository = Depends(get_user_settings_repository),
    settings: Settings = Depends(get_app_settings),
) -> PlaylistGenerationService:
    """Get the playlist generation pipeline."""
    return PlaylistGenerationService(
        spotify_client=spotify_client,
        track_validator=TrackValidator(spotify_client, settings.generation),
        suggestion_service=SuggestionService(text_generator, settings.generation),
        template_repository=template_repository,
        prompt_repository=prompt_repository,
        settings_repository=settings_repository,
        settings=settings.generation,
    )


def get_commit_service(
    spotify_client: ISpotifyClient = Depends(get_spotify_client),
    record_repository: PlaylistRecordRepository = Depends(get_playlist_record_repository),
    settings: Settings = Depends(get_app_settings),
) -> PlaylistCommitService:
    """Get the playlist commit service."""
    return PlaylistCommitService(
        spotify_client, record_repository, settings.generation, settings.spotify
    )


def get_playback_service(
    spotify_client: ISpotifyClient = Depends(get_spotify_client),
    session: AuthSession = Depends(get_auth_session),
) -> PlaybackControlService:
    """Get the playback relay bound to the caller's session."""
    return PlaybackControlService(spotify_client, session)
