"""Repository implementations for data persistence."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from auratune.domain.entities import (
    CuratedTemplate,
    GenerationMethod,
    PlaylistRecord,
    SystemPrompt,
    UserSettings,
)
from auratune.domain.exceptions import DuplicateEntityException, EntityNotFoundException
from auratune.domain.ports import (
    ICuratedTemplateRepository,
    IPlaylistRecordRepository,
    ISystemPromptRepository,
    IUserSettingsRepository,
)
from auratune.infrastructure.persistence.models import (
    CuratedTemplateModel,
    PlaylistModel,
    SystemPromptModel,
    UserSettingsModel,
    ensure_utc_aware,
)
from auratune.infrastructure.persistence.retry import with_db_retry

logger = logging.getLogger(__name__)


class PlaylistRecordRepository(IPlaylistRecordRepository):
    """SQLAlchemy implementation of the playlist record repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    # Hey future me, this COMMITS on its own instead of waiting for session_scope. By the time
    # we get here the Spotify playlist already exists, and the commit service has to know
    # right now whether the record landed so it can report the inconsistency. A unique
    # violation rolls back and surfaces as DuplicateEntityException.
    @with_db_retry(max_attempts=3)
    async def add(self, record: PlaylistRecord) -> PlaylistRecord:
        """Persist a new record and commit."""
        model = PlaylistModel(
            id=record.id,
            owner_id=record.owner_id,
            remote_playlist_id=record.remote_playlist_id,
            name=record.name,
            description=record.description,
            generation_method=record.generation_method,
            generation_params=record.generation_params,
            track_count=record.track_count,
            duration_ms=record.duration_ms,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
        self.session.add(model)
        try:
            await self.session.flush()
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateEntityException(
                "PlaylistRecord", record.remote_playlist_id
            ) from e
        return record

    async def get_by_remote_id(self, remote_playlist_id: str) -> PlaylistRecord | None:
        stmt = select(PlaylistModel).where(
            PlaylistModel.remote_playlist_id == remote_playlist_id
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def list_by_owner(
        self, owner_id: str, limit: int = 50, offset: int = 0
    ) -> list[PlaylistRecord]:
        stmt = (
            select(PlaylistModel)
            .where(PlaylistModel.owner_id == owner_id)
            .order_by(PlaylistModel.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    @staticmethod
    def _to_entity(model: PlaylistModel) -> PlaylistRecord:
        return PlaylistRecord(
            id=model.id,
            owner_id=model.owner_id,
            remote_playlist_id=model.remote_playlist_id,
            name=model.name,
            description=model.description,
            generation_method=GenerationMethod(model.generation_method),
            generation_params=dict(model.generation_params or {}),
            track_count=model.track_count,
            duration_ms=model.duration_ms,
            created_at=ensure_utc_aware(model.created_at),
            updated_at=ensure_utc_aware(model.updated_at),
        )


class UserSettingsRepository(IUserSettingsRepository):
    """SQLAlchemy implementation of the user settings repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def _get_model(self, user_id: str) -> UserSettingsModel | None:
        stmt = select(UserSettingsModel).where(UserSettingsModel.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, user_id: str) -> UserSettings | None:
        model = await self._get_model(user_id)
        return self._to_entity(model) if model else None

    @with_db_retry(max_attempts=3)
    async def create_defaults(self, user_id: str) -> UserSettings:
        existing = await self._get_model(user_id)
        if existing is not None:
            return self._to_entity(existing)
        model = UserSettingsModel(user_id=user_id)
        self.session.add(model)
        await self.session.flush()
        return self._to_entity(model)

    @with_db_retry(max_attempts=3)
    async def update(self, settings: UserSettings) -> UserSettings:
        model = await self._get_model(settings.user_id)
        if model is None:
            raise EntityNotFoundException("UserSettings", settings.user_id)
        model.default_playlist_track_count = settings.default_playlist_track_count
        await self.session.flush()
        return self._to_entity(model)

    @staticmethod
    def _to_entity(model: UserSettingsModel) -> UserSettings:
        return UserSettings(
            id=model.id,
            user_id=model.user_id,
            default_playlist_track_count=model.default_playlist_track_count,
            updated_at=ensure_utc_aware(model.updated_at),
        )


class CuratedTemplateRepository(ICuratedTemplateRepository):
    """SQLAlchemy implementation of the curated template repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def get(self, template_id: str) -> CuratedTemplate | None:
        model = await self.session.get(CuratedTemplateModel, template_id)
        return self._to_entity(model) if model else None

    async def list_active(self) -> list[CuratedTemplate]:
        stmt = (
            select(CuratedTemplateModel)
            .where(CuratedTemplateModel.is_active.is_(True))
            .order_by(CuratedTemplateModel.name)
        )
        result = await self.session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    @with_db_retry(max_attempts=3)
    async def add(self, template: CuratedTemplate) -> None:
        self.session.add(
            CuratedTemplateModel(
                id=template.id,
                name=template.name,
                description=template.description,
                icon_url=template.icon_url,
                system_prompt=template.system_prompt,
                is_active=template.is_active,
            )
        )
        await self.session.flush()

    @staticmethod
    def _to_entity(model: CuratedTemplateModel) -> CuratedTemplate:
        return CuratedTemplate(
            id=model.id,
            name=model.name,
            description=model.description,
            icon_url=model.icon_url,
            system_prompt=model.system_prompt,
            is_active=model.is_active,
        )


class SystemPromptRepository(ISystemPromptRepository):
    """SQLAlchemy implementation of the system prompt repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def get_active_by_name(self, name: str) -> SystemPrompt | None:
        stmt = select(SystemPromptModel).where(
            SystemPromptModel.name == name, SystemPromptModel.is_active.is_(True)
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return SystemPrompt(
            id=model.id, name=model.name, content=model.content, is_active=model.is_active
        )

    async def exists(self, name: str) -> bool:
        """Check for a prompt by name regardless of active flag."""
        stmt = select(SystemPromptModel.id).where(SystemPromptModel.name == name)
        result = await self.session.execute(stmt)
        return result.first() is not None

    @with_db_retry(max_attempts=3)
    async def add(self, prompt: SystemPrompt) -> None:
        self.session.add(
            SystemPromptModel(
                id=prompt.id,
                name=prompt.name,
                content=prompt.content,
                is_active=prompt.is_active,
            )
        )
        await self.session.flush()
