"""Application services."""

from .generation_service import GenerationStage, PlaylistGenerationService
from .playback_service import PlaybackControlService
from .playlist_commit_service import PlaylistCommitService
from .suggestion_service import SuggestionService, parse_metadata, parse_suggestions
from .track_validator import TrackValidator, build_search_query
from .user_settings_service import UserSettingsService

__all__ = [
    "GenerationStage",
    "PlaybackControlService",
    "PlaylistCommitService",
    "PlaylistGenerationService",
    "SuggestionService",
    "TrackValidator",
    "UserSettingsService",
    "build_search_query",
    "parse_metadata",
    "parse_suggestions",
]
