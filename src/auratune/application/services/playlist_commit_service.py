"""Save a previewed playlist to Spotify and record it locally."""

import logging

import httpx
from sqlalchemy.exc import SQLAlchemyError

from auratune.config.settings import GenerationSettings, SpotifySettings
from auratune.domain.dtos import ActionResult, AuthSession, CommitRequest, CommitResult
from auratune.domain.entities import PlaylistRecord
from auratune.domain.exceptions import DomainException
from auratune.domain.ports import IPlaylistRecordRepository, ISpotifyClient
from auratune.infrastructure.observability.logger_template import log_operation

logger = logging.getLogger(__name__)

# Transport errors only reach us once the client has exhausted its retries.
_UPSTREAM_ERRORS = (DomainException, httpx.HTTPError)


# Listen up, the ordering here is the whole point: create -> add batches -> record. There is no
# rollback on Spotify (deleting a playlist only unfollows it), so every failure after the
# create MUST put the remote playlist id in the message. The record write is last so a
# failed Spotify step never leaves a DB row pointing at a half-built playlist.
class PlaylistCommitService:
    """Commit a CommitRequest as a private Spotify playlist plus a PlaylistRecord."""

    def __init__(
        self,
        spotify_client: ISpotifyClient,
        record_repository: IPlaylistRecordRepository,
        settings: GenerationSettings | None = None,
        spotify_settings: SpotifySettings | None = None,
    ) -> None:
        self._spotify = spotify_client
        self._records = record_repository
        self._settings = settings or GenerationSettings()
        self._spotify_settings = spotify_settings or SpotifySettings()

    def _validate(self, session: AuthSession, request: CommitRequest) -> str | None:
        if not session.is_complete:
            return "User session not found or incomplete. Please log in again."
        if not request.name or not request.name.strip():
            return "Playlist name cannot be empty."
        if len(request.name) > self._settings.max_name_length:
            return (
                "Playlist name cannot exceed "
                f"{self._settings.max_name_length} characters."
            )
        if request.description and len(request.description) > self._settings.max_description_length:
            return (
                "Playlist description cannot exceed "
                f"{self._settings.max_description_length} characters."
            )
        if not request.tracks:
            return "Cannot save an empty playlist."
        if not request.playable_tracks:
            return "None of the tracks has a Spotify URI."
        return None

    async def commit(
        self, session: AuthSession, request: CommitRequest
    ) -> ActionResult[CommitResult]:
        """
        Create the playlist, add tracks in batches, then persist the record.

        Args:
            session: Auth session (token + both user ids)
            request: Name, description, tracks and generation metadata

        Returns:
            Success with ids and URL. Failures after the create step carry the
            remote playlist id in the message; a failed record write has
            ``error_code="record_inconsistency"``.
        """
        problem = self._validate(session, request)
        if problem:
            return ActionResult.fail(problem, error_code="validation")

        token = session.bearer_token or ""
        external_user_id = session.external_user_id or ""
        owner_id = session.internal_user_id or ""
        name = request.name.strip()
        description = (request.description or "").strip()
        uris = [track.uri for track in request.playable_tracks]

        async with log_operation(
            logger, "playlist_commit", user_id=owner_id, track_count=len(uris)
        ) as outcome:
            try:
                created = await self._spotify.create_playlist(
                    external_user_id, name, token, description=description, public=False
                )
            except _UPSTREAM_ERRORS as e:
                outcome["error"] = "create_failed"
                return ActionResult.fail(
                    f"Failed to create playlist on Spotify: {_describe(e)}",
                    error_code="create_failed",
                )

            playlist_id = created.get("id")
            if not playlist_id:
                outcome["error"] = "create_failed"
                return ActionResult.fail(
                    "Spotify did not return a playlist ID.", error_code="create_failed"
                )
            outcome["remote_playlist_id"] = playlist_id
            playlist_url = (created.get("external_urls") or {}).get("spotify") or (
                f"{self._spotify_settings.playlist_url_base}/{playlist_id}"
            )

            batch_size = self._settings.track_add_batch_size
            for start in range(0, len(uris), batch_size):
                batch = uris[start : start + batch_size]
                try:
                    await self._spotify.add_tracks_to_playlist(playlist_id, batch, token)
                except _UPSTREAM_ERRORS as e:
                    logger.error(
                        "Adding tracks %d-%d to playlist %s failed: %s",
                        start,
                        start + len(batch),
                        playlist_id,
                        _describe(e),
                    )
                    outcome["error"] = "add_tracks_failed"
                    return ActionResult.fail(
                        f"Playlist created, but failed to add tracks: {_describe(e)} "
                        f"(Spotify playlist ID: {playlist_id})",
                        error_code="add_tracks_failed",
                        data=CommitResult(
                            remote_playlist_id=playlist_id,
                            playlist_url=playlist_url,
                            record_id="",
                        ),
                    )

            record = PlaylistRecord(
                owner_id=owner_id,
                remote_playlist_id=playlist_id,
                name=name,
                description=description or None,
                generation_method=request.generation_method,
                generation_params=dict(request.generation_params),
                track_count=len(uris),
                duration_ms=request.duration_ms,
            )
            try:
                await self._records.add(record)
            except (SQLAlchemyError, DomainException) as e:
                logger.critical(
                    f"CRITICAL: Playlist {playlist_id} created on Spotify but failed to "
                    f"save to AuraTune DB. User: {owner_id}. Error: {e}",
                    extra={"remote_playlist_id": playlist_id, "user_id": owner_id},
                )
                outcome["error"] = "record_inconsistency"
                return ActionResult.fail(
                    "Playlist saved to Spotify, but a server error occurred while "
                    "recording it in AuraTune. Please note the playlist ID: "
                    f"{playlist_id}. Error: {e}",
                    error_code="record_inconsistency",
                    data=CommitResult(
                        remote_playlist_id=playlist_id,
                        playlist_url=playlist_url,
                        record_id="",
                    ),
                )
            outcome["record_id"] = record.id

        return ActionResult.ok(
            CommitResult(
                remote_playlist_id=playlist_id,
                playlist_url=playlist_url,
                record_id=record.id,
            ),
            message=f'Playlist "{name}" saved successfully',
        )


def _describe(error: Exception) -> str:
    return getattr(error, "message", None) or str(error) or type(error).__name__
