"""Infrastructure persistence layer."""

from .database import Database
from .models import (
    Base,
    CuratedTemplateModel,
    PlaylistModel,
    SystemPromptModel,
    UserSettingsModel,
)
from .repositories import (
    CuratedTemplateRepository,
    PlaylistRecordRepository,
    SystemPromptRepository,
    UserSettingsRepository,
)
from .retry import is_lock_error, with_db_retry

__all__ = [
    "Base",
    "CuratedTemplateModel",
    "CuratedTemplateRepository",
    "Database",
    "PlaylistModel",
    "PlaylistRecordRepository",
    "SystemPromptModel",
    "SystemPromptRepository",
    "UserSettingsModel",
    "UserSettingsRepository",
    "is_lock_error",
    "with_db_retry",
]
