"""Map loose song suggestions onto real Spotify catalog tracks.

Hey future me - this is a BEST-EFFORT mapper, not a policy engine. It never decides
whether "enough" tracks came back; the orchestrator owns the minimum-yield rule. What
it does guarantee:

- output keeps first-seen order
- no catalog id appears twice
- len(output) <= len(input)
- a bad suggestion is skipped, never fatal
- only a transport/auth failure on the search call aborts the whole run
"""

import asyncio
import logging
import re

import httpx

from auratune.application.services.spotify_mapping import to_confirmed_track
from auratune.config.settings import GenerationSettings
from auratune.domain.dtos import ActionResult
from auratune.domain.entities import ConfirmedTrack, SuggestedTrack
from auratune.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DomainException,
    RateLimitExceededError,
    TransientUpstreamError,
)
from auratune.domain.ports import ISpotifyClient
from auratune.infrastructure.observability.logger_template import log_operation

logger = logging.getLogger(__name__)

_QUOTES = re.compile(r"[\"']")

# Errors that mean "the search itself is broken", not "this one suggestion is odd".
_FATAL_SEARCH_ERRORS = (
    AuthenticationError,
    AuthorizationError,
    RateLimitExceededError,
    TransientUpstreamError,
    httpx.TransportError,
)


def build_search_query(suggestion: SuggestedTrack) -> str:
    """Strip quote characters and combine title and artist into one query."""
    title = _QUOTES.sub("", suggestion.title).strip()
    artist = _QUOTES.sub("", suggestion.artist).strip()
    return f"{title} {artist}".strip()


class TrackValidator:
    """Validate and de-duplicate suggestions against the catalog."""

    def __init__(
        self,
        spotify_client: ISpotifyClient,
        settings: GenerationSettings | None = None,
    ) -> None:
        self._spotify = spotify_client
        self._settings = settings or GenerationSettings()

    async def validate(
        self, access_token: str, suggestions: list[SuggestedTrack]
    ) -> ActionResult[list[ConfirmedTrack]]:
        """
        Resolve each suggestion to at most one catalog track.

        Args:
            access_token: Spotify bearer token
            suggestions: Ordered suggestions (at most ``max_suggestions``)

        Returns:
            Success with the accepted tracks (possibly empty), or a failure when
            the input is invalid or the search call itself fails.
        """
        if not access_token:
            return ActionResult.fail(
                "Missing Spotify access token.", error_code="validation"
            )
        if len(suggestions) > self._settings.max_suggestions:
            return ActionResult.fail(
                f"Too many suggestions: {len(suggestions)} "
                f"(maximum {self._settings.max_suggestions}).",
                error_code="validation",
            )

        accepted: list[ConfirmedTrack] = []
        seen_ids: set[str] = set()

        try:
            async with log_operation(
                logger, "validate_tracks", suggestion_count=len(suggestions)
            ) as outcome:
                for index, suggestion in enumerate(suggestions):
                    if index and self._settings.validation_delay_seconds:
                        await asyncio.sleep(self._settings.validation_delay_seconds)

                    track = await self._resolve(access_token, suggestion)
                    if track is None or track.catalog_id in seen_ids:
                        continue
                    seen_ids.add(track.catalog_id)
                    accepted.append(track)

                outcome["accepted_count"] = len(accepted)
        except _FATAL_SEARCH_ERRORS as e:
            message = getattr(e, "message", None) or str(e)
            return ActionResult.fail(
                f"Track validation failed: {message}", error_code="upstream"
            )

        return ActionResult.ok(
            accepted,
            message=f"Validated {len(accepted)} of {len(suggestions)} suggestions.",
        )

    async def _resolve(
        self, access_token: str, suggestion: SuggestedTrack
    ) -> ConfirmedTrack | None:
        if not suggestion.title.strip() or not suggestion.artist.strip():
            logger.warning(
                "Skipping suggestion with missing title or artist: %r", suggestion
            )
            return None

        query = build_search_query(suggestion)
        if not query:
            logger.warning("Skipping suggestion that is only quotes: %r", suggestion)
            return None

        try:
            items = await self._spotify.search_tracks(query, access_token, limit=1)
        except _FATAL_SEARCH_ERRORS:
            raise
        except DomainException as e:
            # 4xx, not-found and friends are about this query only.
            logger.warning("Search rejected for %r: %s", query, e.message)
            return None

        if not items or not items[0].get("id"):
            logger.debug("No catalog match for %r", query)
            return None
        return to_confirmed_track(items[0])
