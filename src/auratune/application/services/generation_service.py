"""Playlist generation pipeline: context, suggestions, validation, metadata, preview."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx
from sqlalchemy.exc import SQLAlchemyError

from auratune.application.services.suggestion_service import SuggestionService
from auratune.application.services.track_validator import TrackValidator
from auratune.config.settings import GenerationSettings
from auratune.domain.dtos import ActionResult, AuthSession
from auratune.domain.entities import ConfirmedTrack, GenerationMethod, PlaylistPreview
from auratune.domain.exceptions import (
    DomainException,
    EntityNotFoundException,
)
from auratune.domain.ports import (
    ICuratedTemplateRepository,
    ISpotifyClient,
    ISystemPromptRepository,
    IUserSettingsRepository,
)

logger = logging.getLogger(__name__)

SESSION_INCOMPLETE_MESSAGE = "User session not found or incomplete. Please log in again."
SETTINGS_MISSING_MESSAGE = "No user settings found for the given user ID."


class GenerationStage(str, Enum):
    """Where a generation run is (or where it failed)."""

    RESOLVING_CONTEXT = "resolving_context"
    GENERATING_SUGGESTIONS = "generating_suggestions"
    VALIDATING_TRACKS = "validating_tracks"
    CHECKING_YIELD = "checking_yield"
    COMPUTING_METADATA = "computing_metadata"
    ASSEMBLING_PREVIEW = "assembling_preview"
    DONE = "done"
    FAILED = "failed"


@dataclass
class _GenerationContext:
    """Everything ResolvingContext produces for the later stages."""

    method: GenerationMethod
    system_instruction: str
    user_instruction: str
    theme: str
    track_count: int
    naming_instruction: str
    # Used for the yield-failure message ("... similar to X" vs "on Spotify").
    seed_label: str | None = None
    params: dict[str, Any] = field(default_factory=dict)


class _StageFailure(Exception):
    """Internal short-circuit carrying the failing stage and its message."""

    def __init__(
        self, stage: GenerationStage, message: str, partial: PlaylistPreview | None = None
    ) -> None:
        self.stage = stage
        self.message = message
        self.partial = partial
        super().__init__(message)


# Hey future me, this is a straight-line await chain. Each stage either hands data to the
# next one or raises _StageFailure, which generate_* folds into ActionResult.fail with the
# stage value as error_code. There are NO retries here; the HTTP clients already retry
# transient errors, and a second LLM call would just burn money on the same bad prompt.
class PlaylistGenerationService:
    """Build a PlaylistPreview from a curated template or a seed track."""

    def __init__(
        self,
        spotify_client: ISpotifyClient,
        track_validator: TrackValidator,
        suggestion_service: SuggestionService,
        template_repository: ICuratedTemplateRepository,
        prompt_repository: ISystemPromptRepository,
        settings_repository: IUserSettingsRepository,
        settings: GenerationSettings | None = None,
    ) -> None:
        self._spotify = spotify_client
        self._validator = track_validator
        self._suggestions = suggestion_service
        self._templates = template_repository
        self._prompts = prompt_repository
        self._user_settings = settings_repository
        self._settings = settings or GenerationSettings()

    async def generate_from_template(
        self, session: AuthSession, template_id: str
    ) -> ActionResult[PlaylistPreview]:
        """Generate a preview for a stored curated template.

        Args:
            session: Auth session (token + both user ids)
            template_id: Curated template id

        Returns:
            Success with the preview, or failure with ``error_code`` = failing stage
        """
        return await self._run(session, lambda: self._template_context(session, template_id))

    async def generate_from_track_match(
        self, session: AuthSession, seed_track_id: str
    ) -> ActionResult[PlaylistPreview]:
        """Generate a preview of tracks similar to one seed track."""
        return await self._run(session, lambda: self._track_match_context(session, seed_track_id))

    async def _run(
        self, session: AuthSession, resolve: Callable[[], Awaitable[_GenerationContext]]
    ) -> ActionResult[PlaylistPreview]:
        stage = GenerationStage.RESOLVING_CONTEXT
        try:
            if not session.is_complete:
                raise _StageFailure(stage, SESSION_INCOMPLETE_MESSAGE)
            context: _GenerationContext = await resolve()

            stage = GenerationStage.GENERATING_SUGGESTIONS
            suggested = await self._suggestions.generate_suggestions(
                context.system_instruction, context.user_instruction, context.track_count
            )
            if not suggested.is_success or not suggested.data:
                raise _StageFailure(stage, suggested.message or "No suggestions generated.")

            stage = GenerationStage.VALIDATING_TRACKS
            validated = await self._validator.validate(
                session.bearer_token or "", suggested.data
            )
            if not validated.is_success:
                raise _StageFailure(stage, validated.message)
            tracks = validated.data or []

            stage = GenerationStage.CHECKING_YIELD
            warnings = self._check_yield(tracks, context)

            stage = GenerationStage.COMPUTING_METADATA
            metadata = await self._suggestions.generate_metadata(
                context.naming_instruction, tracks, context.theme
            )
            if not metadata.is_success or metadata.data is None:
                raise _StageFailure(stage, metadata.message)

            stage = GenerationStage.ASSEMBLING_PREVIEW
            preview = PlaylistPreview(
                tracks=tracks,
                name=metadata.data.name,
                description=metadata.data.description,
                generation_method=context.method,
                generation_params=context.params,
            )
        except _StageFailure as failure:
            logger.warning(
                "Generation %s at %s: %s",
                GenerationStage.FAILED.value,
                failure.stage.value,
                failure.message,
            )
            return ActionResult.fail(
                failure.message, error_code=failure.stage.value, data=failure.partial
            )
        except SQLAlchemyError as e:
            logger.exception("Database error during generation at %s", stage.value)
            return ActionResult.fail(
                f"A database error occurred while generating the playlist: {e}",
                error_code=stage.value,
            )
        except ValueError as e:
            # PlaylistPreview refuses duplicate ids; the validator should never let one through.
            logger.error("Preview assembly rejected tracks: %s", e)
            return ActionResult.fail(str(e), error_code=stage.value)
        except DomainException as e:
            # Anything a port raised that the stage itself did not translate.
            logger.warning(
                "Generation %s at %s: %s", GenerationStage.FAILED.value, stage.value, e.message
            )
            return ActionResult.fail(e.message, error_code=stage.value)

        stage = GenerationStage.DONE
        logger.info(
            "Generation %s: %s preview with %d tracks (requested %d)",
            stage.value,
            context.method.value,
            preview.total_tracks,
            context.track_count,
        )
        return ActionResult.ok(
            preview,
            message=f"Generated {preview.total_tracks} tracks.",
            warnings=warnings,
        )

    def _check_yield(
        self, tracks: list[ConfirmedTrack], context: _GenerationContext
    ) -> list[str]:
        found = len(tracks)
        minimum = self._settings.min_valid_tracks
        if found < minimum:
            source = (
                f'similar to "{context.seed_label}"' if context.seed_label else "on Spotify"
            )
            message = (
                f"Could not find enough valid tracks {source}. Only {found} tracks "
                f"were found (minimum {minimum} required)."
            )
            if found > 0:
                message += " You can try saving these, or regenerate for more options."
            elif context.seed_label:
                message += " Please try regenerating or choose a different seed song."
            else:
                message += " Please try regenerating or choose a different template."
            # Partial results ride along so the client can still offer to save them.
            partial = (
                PlaylistPreview(
                    tracks=tracks,
                    name="",
                    description="",
                    generation_method=context.method,
                    generation_params=context.params,
                )
                if tracks
                else None
            )
            raise _StageFailure(GenerationStage.CHECKING_YIELD, message, partial)

        if found < context.track_count:
            return [
                f"Only {found} of the {context.track_count} requested tracks were "
                "found on Spotify."
            ]
        return []

    async def _read_track_count(self, user_id: str) -> int:
        try:
            user_settings = await self._user_settings.get(user_id)
        except SQLAlchemyError as e:
            logger.exception("Failed to read settings for user %s", user_id)
            raise _StageFailure(
                GenerationStage.RESOLVING_CONTEXT,
                f"Could not load user settings: {e}",
            ) from e
        if user_settings is None:
            raise _StageFailure(GenerationStage.RESOLVING_CONTEXT, SETTINGS_MISSING_MESSAGE)
        return user_settings.default_playlist_track_count

    async def _naming_instruction(self) -> str:
        prompt = await self._prompts.get_active_by_name(self._settings.naming_prompt_name)
        if prompt is None or not prompt.content.strip():
            raise _StageFailure(
                GenerationStage.RESOLVING_CONTEXT,
                f'System prompt "{self._settings.naming_prompt_name}" not found or inactive.',
            )
        return prompt.content

    async def _template_context(
        self, session: AuthSession, template_id: str
    ) -> _GenerationContext:
        stage = GenerationStage.RESOLVING_CONTEXT
        if not template_id:
            raise _StageFailure(stage, "Template ID is required.")

        template = await self._templates.get(template_id)
        if template is None or not template.is_active:
            raise _StageFailure(stage, f'Template with ID "{template_id}" not found.')
        if not template.system_prompt.strip():
            raise _StageFailure(stage, f'Template "{template.name}" has no system prompt.')

        track_count = await self._read_track_count(session.internal_user_id or "")
        naming = await self._naming_instruction()

        user_instruction = (
            f"Generate a list of exactly {track_count} unique song suggestions that fit "
            f'the following context: theme: "{template.name}", description: '
            f'"{template.description}". The suggestions should be suitable for a music '
            "playlist."
        )
        return _GenerationContext(
            method=GenerationMethod.CURATED_TEMPLATE,
            system_instruction=template.system_prompt,
            user_instruction=user_instruction,
            theme=template.description or template.name,
            track_count=track_count,
            naming_instruction=naming,
            params={"template_id": template.id, "template_name": template.name},
        )

    async def _track_match_context(
        self, session: AuthSession, seed_track_id: str
    ) -> _GenerationContext:
        stage = GenerationStage.RESOLVING_CONTEXT
        if not seed_track_id:
            raise _StageFailure(stage, "Seed track ID is required.")

        try:
            seed = await self._spotify.get_track(seed_track_id, session.bearer_token or "")
        except EntityNotFoundException as e:
            raise _StageFailure(stage, e.message) from e
        except DomainException as e:
            raise _StageFailure(stage, f"Failed to fetch seed track: {e.message}") from e
        except httpx.HTTPError as e:
            raise _StageFailure(stage, f"Failed to fetch seed track: {e}") from e

        seed_name = seed.get("name") or "Unknown track"
        seed_artists = ", ".join(
            a.get("name", "") for a in seed.get("artists") or [] if a.get("name")
        ) or "Unknown artist"

        prompt = await self._prompts.get_active_by_name(
            self._settings.track_match_prompt_name
        )
        if prompt is None or not prompt.content.strip():
            raise _StageFailure(
                stage,
                f'System prompt "{self._settings.track_match_prompt_name}" not found or inactive.',
            )

        track_count = await self._read_track_count(session.internal_user_id or "")
        naming = await self._naming_instruction()

        user_instruction = (
            f"Generate a list of exactly {track_count} unique song suggestions.\n"
            f"Seed Song: '{seed_name}' by {seed_artists}.\n"
            "Focus on musical similarity to this seed song."
        )
        theme = (
            f"A playlist of tracks similar to '{seed_name}' by {seed_artists}. Focus on "
            "capturing the essence of the seed song while creating an engaging "
            "listening experience."
        )
        return _GenerationContext(
            method=GenerationMethod.TRACK_MATCH,
            system_instruction=prompt.content,
            user_instruction=user_instruction,
            theme=theme,
            track_count=track_count,
            naming_instruction=naming,
            seed_label=seed_name,
            params={
                "seed_track_id": seed_track_id,
                "seed_track_name": seed_name,
                "seed_artists": seed_artists,
            },
        )
