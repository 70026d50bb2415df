"""Turn LLM text into song suggestions and playlist metadata.

The text generator is a free-form chat model, so everything it returns is
treated as untrusted: fenced or bare JSON is accepted, both our
``{"title", "artist"}`` shape and the older ``{"trackName", "artistName"}``
shape are understood, and anything else is a SuggestionFormatError.
"""

import json
import logging
import re
from typing import Any

from auratune.config.settings import GenerationSettings
from auratune.domain.dtos import ActionResult, MetadataSuggestion
from auratune.domain.entities import ConfirmedTrack, SuggestedTrack
from auratune.domain.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    RateLimitExceededError,
    SuggestionFormatError,
)
from auratune.domain.ports import ITextGenerator

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_WRAPPER_KEYS = ("tracks", "songs", "suggestions", "playlist")

SUGGESTION_FORMAT_INSTRUCTION = (
    'Respond ONLY with a JSON array of objects, each with the keys "title" and '
    '"artist". Do not add commentary.'
)
METADATA_FORMAT_INSTRUCTION = (
    'Respond ONLY with a JSON object with the keys "name" and "description".'
)


def _extract_json(text: str) -> Any:
    """Decode the JSON payload in ``text``, tolerating a Markdown code fence."""
    candidate = text.strip()
    fenced = _FENCE.search(candidate)
    if fenced:
        candidate = fenced.group(1).strip()
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass
    # Chatty models sometimes wrap the payload in prose; take the outermost bracket pair.
    for opener, closer in (("[", "]"), ("{", "}")):
        start, end = candidate.find(opener), candidate.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(candidate[start : end + 1])
            except json.JSONDecodeError:
                continue
    raise SuggestionFormatError("The AI response was not valid JSON.")


def parse_suggestions(text: str) -> list[SuggestedTrack]:
    """Parse the generator's answer into suggestions.

    Raises:
        SuggestionFormatError: Empty text, not JSON, not a list, or no usable items
    """
    if not text or not text.strip():
        raise SuggestionFormatError("The AI returned an empty response.")

    payload = _extract_json(text)
    if isinstance(payload, dict):
        for key in _WRAPPER_KEYS:
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break
    if not isinstance(payload, list):
        raise SuggestionFormatError("The AI response was not a list of songs.")

    suggestions: list[SuggestedTrack] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        title = item.get("title") or item.get("trackName") or item.get("name")
        artist = item.get("artist") or item.get("artistName")
        if isinstance(title, str) and isinstance(artist, str):
            suggestions.append(SuggestedTrack(title=title, artist=artist))

    if not suggestions:
        raise SuggestionFormatError("The AI response contained no usable songs.")
    return suggestions


def parse_metadata(text: str, max_name: int = 100, max_description: int = 300) -> MetadataSuggestion:
    """Parse ``{"name", "description"}`` and clip to Spotify's limits.

    Raises:
        SuggestionFormatError: Empty text, not a JSON object, or blank fields
    """
    if not text or not text.strip():
        raise SuggestionFormatError("The AI returned an empty response.")
    payload = _extract_json(text)
    if not isinstance(payload, dict):
        raise SuggestionFormatError("The AI response was not a name/description object.")

    name = payload.get("name") or payload.get("playlistName")
    description = payload.get("description") or payload.get("playlistDescription")
    if not isinstance(name, str) or not name.strip():
        raise SuggestionFormatError("The AI response had no playlist name.")
    if not isinstance(description, str) or not description.strip():
        raise SuggestionFormatError("The AI response had no playlist description.")

    return MetadataSuggestion(
        name=name.strip()[:max_name].rstrip(),
        description=description.strip()[:max_description].rstrip(),
    )


class SuggestionService:
    """Ask the text generator for songs and names, and parse the answers."""

    def __init__(
        self,
        text_generator: ITextGenerator,
        settings: GenerationSettings | None = None,
    ) -> None:
        self._generator = text_generator
        self._settings = settings or GenerationSettings()

    async def generate_suggestions(
        self, system_instruction: str, user_instruction: str, track_count: int
    ) -> ActionResult[list[SuggestedTrack]]:
        """
        Get ``track_count`` song suggestions.

        Args:
            system_instruction: System prompt (template or track-match prompt)
            user_instruction: Context with the exact count embedded
            track_count: How many suggestions were asked for (1-100)

        Returns:
            Success with at most ``track_count`` suggestions, or failure
        """
        if not system_instruction.strip():
            return ActionResult.fail(
                "System prompt is required for track generation.",
                error_code="validation",
            )
        if not 1 <= track_count <= self._settings.max_suggestions:
            return ActionResult.fail(
                "Track count must be a positive number, up to "
                f"{self._settings.max_suggestions}.",
                error_code="validation",
            )

        try:
            text = await self._generator.generate(
                system_instruction, f"{user_instruction}\n\n{SUGGESTION_FORMAT_INSTRUCTION}"
            )
            suggestions = parse_suggestions(text)
        except (ExternalServiceError, RateLimitExceededError, ConfigurationError) as e:
            logger.warning("Suggestion generation failed: %s", e.message)
            return ActionResult.fail(
                f"Failed to generate track suggestions: {e.message}",
                error_code="upstream",
            )

        if len(suggestions) > track_count:
            suggestions = suggestions[:track_count]
        logger.info(
            "Generated %d suggestions (requested %d)", len(suggestions), track_count
        )
        return ActionResult.ok(suggestions)

    async def generate_metadata(
        self,
        naming_instruction: str,
        tracks: list[ConfirmedTrack],
        theme: str,
    ) -> ActionResult[MetadataSuggestion]:
        """
        Get a playlist name and description for validated tracks.

        Args:
            naming_instruction: The "playlist-naming" system prompt
            tracks: Validated tracks (non-empty)
            theme: Theme description, or the track-match seed sentence
        """
        if not tracks:
            return ActionResult.fail(
                "A list of tracks is required to generate name and description.",
                error_code="validation",
            )
        if not theme.strip():
            return ActionResult.fail(
                "Theme description is required.", error_code="validation"
            )

        track_list = ", ".join(
            f"{track.title} by {track.artists[0] if track.artists else 'Unknown'}"
            for track in tracks
        )
        user_instruction = (
            f'Given these tracks: {track_list}, and the theme "{theme}", generate a '
            "catchy playlist name and a short, engaging description.\n\n"
            f"{METADATA_FORMAT_INSTRUCTION}"
        )

        try:
            text = await self._generator.generate(naming_instruction, user_instruction)
            metadata = parse_metadata(
                text,
                max_name=self._settings.max_name_length,
                max_description=self._settings.max_description_length,
            )
        except (ExternalServiceError, RateLimitExceededError, ConfigurationError) as e:
            logger.warning("Metadata generation failed: %s", e.message)
            return ActionResult.fail(
                f"Failed to generate playlist name and description: {e.message}",
                error_code="upstream",
            )
        return ActionResult.ok(metadata)
