"""User settings use cases."""

import logging

from sqlalchemy.exc import SQLAlchemyError

from auratune.config.settings import GenerationSettings
from auratune.domain.dtos import ActionResult
from auratune.domain.entities import UserSettings
from auratune.domain.ports import IUserSettingsRepository

logger = logging.getLogger(__name__)


class UserSettingsService:
    """Read and update per-user generation preferences."""

    def __init__(
        self,
        repository: IUserSettingsRepository,
        settings: GenerationSettings | None = None,
    ) -> None:
        self._repository = repository
        self._settings = settings or GenerationSettings()

    async def get_or_create(self, user_id: str) -> ActionResult[UserSettings]:
        """Return the user's settings, creating the default row on first access."""
        if not user_id:
            return ActionResult.fail("User ID is required.", error_code="validation")
        try:
            existing = await self._repository.get(user_id)
            if existing is not None:
                return ActionResult.ok(existing)
            created = await self._repository.create_defaults(user_id)
        except SQLAlchemyError as e:
            logger.exception("Failed to load settings for user %s", user_id)
            return ActionResult.fail(
                f"Could not load user settings: {e}", error_code="database"
            )
        logger.info("Created default settings for user %s", user_id)
        return ActionResult.ok(created, message="Default settings created.")

    async def update_track_count(
        self, user_id: str, track_count: int
    ) -> ActionResult[UserSettings]:
        """
        Change the default number of tracks per generated playlist.

        Args:
            user_id: Internal user id
            track_count: New default, within the configured min/max

        Returns:
            Success with the saved settings, or a validation/database failure
        """
        low, high = self._settings.min_track_count, self._settings.max_track_count
        if not low <= track_count <= high:
            return ActionResult.fail(
                f"Track count must be between {low} and {high}.",
                error_code="validation",
            )

        current = await self.get_or_create(user_id)
        if not current.is_success or current.data is None:
            return current

        current.data.default_playlist_track_count = track_count
        try:
            saved = await self._repository.update(current.data)
        except SQLAlchemyError as e:
            logger.exception("Failed to update settings for user %s", user_id)
            return ActionResult.fail(
                f"Could not save user settings: {e}", error_code="database"
            )
        return ActionResult.ok(saved, message="Settings updated.")
