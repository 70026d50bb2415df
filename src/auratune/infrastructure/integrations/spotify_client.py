"""Spotify Web API client: catalog, playlists and playback."""

import logging
from typing import Any, cast

import httpx

from auratune.application.cache.spotify_cache import SpotifyCache
from auratune.config.settings import RetrySettings, SpotifySettings
from auratune.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    EntityNotFoundException,
    ExternalServiceError,
    NoActiveDeviceError,
    PremiumRequiredError,
    RateLimitExceededError,
    TransientUpstreamError,
    ValidationException,
)
from auratune.domain.ports import ISpotifyClient
from auratune.infrastructure.integrations.retry import is_unsent_error, with_transport_retry
from auratune.infrastructure.rate_limiter import RateLimiter, get_spotify_limiter

logger = logging.getLogger(__name__)

VALID_TOP_ITEM_TYPES = ("artists", "tracks")
VALID_TIME_RANGES = ("short_term", "medium_term", "long_term")
VALID_REPEAT_STATES = ("track", "context", "off")
MAX_PLAYLIST_NAME_LENGTH = 100
MAX_PLAYLIST_DESCRIPTION_LENGTH = 300
MAX_TRACKS_PER_ADD = 100


def _error_details(response: httpx.Response) -> tuple[str, str | None]:
    """Pull (message, reason) out of a Spotify error body.

    Spotify uses ``{"error": {"status": 404, "message": "...", "reason": "NO_ACTIVE_DEVICE"}}``
    for the Web API. Anything else falls back to the reason phrase.
    """
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}", None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or response.reason_phrase), error.get("reason")
    if isinstance(error, str):
        return str(body.get("error_description") or error), None
    return response.reason_phrase or f"HTTP {response.status_code}", None


class SpotifyClient(ISpotifyClient):
    """HTTP client for Spotify Web API operations."""

    # Hey future me, the HTTP client is created lazily in _get_client() so constructing this
    # outside a running loop (settings wiring, tests) is safe. The cache is optional and
    # injected; pass None and every read goes to Spotify.
    def __init__(
        self,
        settings: SpotifySettings,
        retry_settings: RetrySettings | None = None,
        cache: SpotifyCache | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """
        Initialize Spotify client.

        Args:
            settings: Spotify configuration settings
            retry_settings: Backoff policy for transport errors and 5xx
            cache: Optional response cache for catalog reads
            rate_limiter: Token bucket; defaults to the process-wide Spotify limiter
        """
        self.settings = settings
        self.api_base_url = settings.api_base_url.rstrip("/")
        self._client: httpx.AsyncClient | None = None
        self._cache = cache
        self._rate_limiter = rate_limiter
        retry = retry_settings or RetrySettings()
        policy: dict[str, Any] = {
            "max_attempts": retry.max_attempts,
            "initial_delay": retry.initial_delay,
            "max_delay": retry.max_delay,
            "backoff_factor": retry.backoff_factor,
            "jitter": retry.jitter,
        }
        self._send = with_transport_retry(**policy)(self._send_once)
        # POST creates playlists and appends tracks; a repeat would duplicate them.
        self._send_unsafe = with_transport_retry(**policy, retry_on=is_unsent_error)(
            self._send_once
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.timeout)
        return self._client

    # Always close (or use `async with`), otherwise connections leak.
    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SpotifyClient":
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    # =========================================================================
    # REQUEST PIPELINE
    # =========================================================================

    # Hey future me - ONE attempt as far as the transport retry is concerned. Inside it we
    # still wait out 429s via the rate limiter (Retry-After wins), up to
    # settings.max_rate_limit_retries. A 5xx becomes TransientUpstreamError so the
    # decorator around this method retries it with backoff.
    async def _send_once(
        self,
        method: str,
        url: str,
        access_token: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        client = await self._get_client()
        rate_limiter = self._rate_limiter or get_spotify_limiter()
        headers = {"Authorization": f"Bearer {access_token}"}
        max_retries = self.settings.max_rate_limit_retries

        for attempt in range(max_retries + 1):
            async with rate_limiter:
                response = await client.request(
                    method=method,
                    url=url,
                    params=params,
                    json=json,
                    headers=headers,
                )

            if response.status_code == 429:
                retry_after_str = response.headers.get("Retry-After")
                retry_after = (
                    int(retry_after_str)
                    if retry_after_str and retry_after_str.isdigit()
                    else None
                )
                if attempt >= max_retries:
                    logger.error(
                        "Spotify API rate limited (429) after %d retries: %s %s",
                        max_retries,
                        method,
                        url,
                    )
                    raise RateLimitExceededError(
                        "Spotify rate limit exceeded. Please try again shortly.",
                        retry_after=retry_after,
                    )
                wait_time = await rate_limiter.handle_rate_limit_response(retry_after)
                logger.warning(
                    "Spotify 429 (attempt %d/%d): waited %.1fs, retrying %s",
                    attempt + 1,
                    max_retries,
                    wait_time,
                    url,
                )
                continue

            if response.status_code >= 500:
                message, _ = _error_details(response)
                raise TransientUpstreamError(
                    f"Spotify API error {response.status_code}: {message}",
                    status_code=response.status_code,
                )

            return response

        return response

    async def _api_request(
        self,
        method: str,
        path: str,
        access_token: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Make a rate-limited, retried request and translate permanent errors.

        Args:
            method: HTTP method
            path: Path below the API base URL (leading slash)
            access_token: OAuth access token
            params: Query parameters
            json: JSON body

        Returns:
            Successful (2xx) response

        Raises:
            AuthenticationError: 401
            PremiumRequiredError / AuthorizationError: 403
            NoActiveDeviceError / EntityNotFoundException: 404
            RateLimitExceededError: 429 that outlived the rate limiter
            TransientUpstreamError: 5xx after all retries
            httpx.TransportError: connection problems after all retries
            ExternalServiceError: any other 4xx
        """
        if not access_token:
            raise AuthenticationError("Missing Spotify access token.")
        url = f"{self.api_base_url}{path}"
        send = self._send_unsafe if method == "POST" else self._send
        response = await send(method, url, access_token, params, json)
        if response.is_success:
            return response
        self._raise_for_status(response, path)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, path: str) -> None:
        status = response.status_code
        message, reason = _error_details(response)
        if status == 401:
            raise AuthenticationError(
                "Spotify session expired or is invalid. Please log in again."
            )
        if status == 403:
            if reason == "PREMIUM_REQUIRED":
                raise PremiumRequiredError()
            raise AuthorizationError(f"Spotify refused the request: {message}")
        if status == 404:
            if reason == "NO_ACTIVE_DEVICE" or path.startswith("/me/player"):
                raise NoActiveDeviceError()
            raise EntityNotFoundException("Spotify resource", path, message)
        raise ExternalServiceError(
            f"Spotify API error {status}: {message}", status_code=status
        )

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        if response.status_code == 204 or not response.content:
            return {}
        return cast(dict[str, Any], response.json())

    # =========================================================================
    # CATALOG
    # =========================================================================

    async def search_tracks(
        self, query: str, access_token: str, limit: int = 1
    ) -> list[dict[str, Any]]:
        """
        Search Spotify for tracks.

        Args:
            query: Free-text query, e.g. "Teardrop Massive Attack"
            access_token: OAuth access token
            limit: Number of results (1-50)

        Returns:
            Track objects, best match first (possibly empty)

        Raises:
            ValidationException: If limit is out of range or query is blank
        """
        if not 1 <= limit <= 50:
            raise ValidationException("Search limit must be between 1 and 50.")
        if not query.strip():
            raise ValidationException("Search query cannot be empty.")

        if self._cache is not None:
            cached = await self._cache.get("search", query=query, limit=limit)
            if cached is not None:
                return cast(list[dict[str, Any]], cached)

        response = await self._api_request(
            "GET",
            "/search",
            access_token,
            params={"q": query, "type": "track", "limit": limit},
        )
        items = cast(
            list[dict[str, Any]],
            self._json(response).get("tracks", {}).get("items", []) or [],
        )

        if self._cache is not None:
            await self._cache.put("search", items, query=query, limit=limit)
        return items

    async def get_track(self, track_id: str, access_token: str) -> dict[str, Any]:
        """
        Get track details.

        Raises:
            EntityNotFoundException: If Spotify has no such track
        """
        if self._cache is not None:
            cached = await self._cache.get("track", track_id=track_id)
            if cached is not None:
                return cast(dict[str, Any], cached)

        try:
            response = await self._api_request("GET", f"/tracks/{track_id}", access_token)
        except EntityNotFoundException as e:
            raise EntityNotFoundException(
                "Track", track_id, f'Track with ID "{track_id}" not found on Spotify.'
            ) from e
        track = self._json(response)

        if self._cache is not None:
            await self._cache.put("track", track, track_id=track_id)
        return track

    async def get_user_top_items(
        self,
        item_type: str,
        access_token: str,
        time_range: str = "medium_term",
        limit: int = 20,
    ) -> dict[str, Any]:
        """
        Get the current user's top artists or tracks.

        Args:
            item_type: "artists" or "tracks"
            access_token: OAuth access token
            time_range: short_term, medium_term or long_term
            limit: 1-50

        Returns:
            Paging object with ``items``
        """
        if item_type not in VALID_TOP_ITEM_TYPES:
            raise ValidationException("Type must be 'artists' or 'tracks'.")
        if time_range not in VALID_TIME_RANGES:
            raise ValidationException(
                "Time range must be one of short_term, medium_term, long_term."
            )
        if not 1 <= limit <= 50:
            raise ValidationException("Limit must be between 1 and 50.")

        response = await self._api_request(
            "GET",
            f"/me/top/{item_type}",
            access_token,
            params={"time_range": time_range, "limit": limit},
        )
        return self._json(response)

    # =========================================================================
    # PLAYLISTS
    # =========================================================================

    async def create_playlist(
        self,
        user_id: str,
        name: str,
        access_token: str,
        description: str = "",
        public: bool = False,
    ) -> dict[str, Any]:
        """
        Create a playlist for a user.

        Returns:
            Playlist object (``id``, ``external_urls.spotify``, ...)

        Raises:
            ValidationException: Blank/too long name or too long description
        """
        if not name.strip():
            raise ValidationException("Playlist name cannot be empty.")
        if len(name) > MAX_PLAYLIST_NAME_LENGTH:
            raise ValidationException(
                f"Playlist name cannot exceed {MAX_PLAYLIST_NAME_LENGTH} characters."
            )
        if len(description) > MAX_PLAYLIST_DESCRIPTION_LENGTH:
            raise ValidationException(
                "Playlist description cannot exceed "
                f"{MAX_PLAYLIST_DESCRIPTION_LENGTH} characters."
            )

        response = await self._api_request(
            "POST",
            f"/users/{user_id}/playlists",
            access_token,
            json={"name": name, "description": description, "public": public},
        )
        return self._json(response)

    async def add_tracks_to_playlist(
        self, playlist_id: str, track_uris: list[str], access_token: str
    ) -> dict[str, Any]:
        """
        Append tracks to a playlist (Spotify accepts at most 100 per call).

        Returns:
            Response with ``snapshot_id``
        """
        if not track_uris:
            raise ValidationException("No track URIs provided.")
        if len(track_uris) > MAX_TRACKS_PER_ADD:
            raise ValidationException(
                f"Cannot add more than {MAX_TRACKS_PER_ADD} tracks per request."
            )

        response = await self._api_request(
            "POST",
            f"/playlists/{playlist_id}/tracks",
            access_token,
            json={"uris": track_uris},
        )
        return self._json(response)

    # =========================================================================
    # PLAYBACK
    # =========================================================================

    @staticmethod
    def _device_params(device_id: str | None, **params: Any) -> dict[str, Any]:
        if device_id:
            params["device_id"] = device_id
        return params

    async def get_playback_state(self, access_token: str) -> dict[str, Any] | None:
        """Get playback state; None when Spotify reports nothing playing (204)."""
        response = await self._api_request("GET", "/me/player", access_token)
        payload = self._json(response)
        return payload or None

    async def get_devices(self, access_token: str) -> list[dict[str, Any]]:
        """List the user's available Connect devices."""
        response = await self._api_request("GET", "/me/player/devices", access_token)
        return cast(list[dict[str, Any]], self._json(response).get("devices", []))

    async def transfer_playback(
        self, device_id: str, access_token: str, play: bool = False
    ) -> None:
        """Transfer playback to ``device_id``."""
        await self._api_request(
            "PUT",
            "/me/player",
            access_token,
            json={"device_ids": [device_id], "play": play},
        )

    async def get_recently_played(
        self, access_token: str, limit: int = 1
    ) -> list[dict[str, Any]]:
        """Recently played history, newest first."""
        if not 1 <= limit <= 50:
            raise ValidationException("Limit must be between 1 and 50.")
        response = await self._api_request(
            "GET",
            "/me/player/recently-played",
            access_token,
            params={"limit": limit},
        )
        return cast(list[dict[str, Any]], self._json(response).get("items", []))

    async def play(
        self,
        access_token: str,
        device_id: str | None = None,
        uris: list[str] | None = None,
        position_ms: int | None = None,
    ) -> None:
        """Start/resume playback, optionally with explicit track URIs."""
        body: dict[str, Any] | None = None
        if uris:
            body = {"uris": uris}
            if position_ms is not None:
                body["position_ms"] = position_ms
        await self._api_request(
            "PUT",
            "/me/player/play",
            access_token,
            params=self._device_params(device_id),
            json=body,
        )

    async def pause(self, access_token: str, device_id: str | None = None) -> None:
        """Pause playback."""
        await self._api_request(
            "PUT", "/me/player/pause", access_token, params=self._device_params(device_id)
        )

    async def next_track(
        self, access_token: str, device_id: str | None = None
    ) -> None:
        """Skip to next track."""
        await self._api_request(
            "POST", "/me/player/next", access_token, params=self._device_params(device_id)
        )

    async def previous_track(
        self, access_token: str, device_id: str | None = None
    ) -> None:
        """Skip to previous track."""
        await self._api_request(
            "POST",
            "/me/player/previous",
            access_token,
            params=self._device_params(device_id),
        )

    async def seek(
        self, position_ms: int, access_token: str, device_id: str | None = None
    ) -> None:
        """Seek to ``position_ms`` in the current track."""
        if position_ms < 0:
            raise ValidationException("Position must be a non-negative number.")
        await self._api_request(
            "PUT",
            "/me/player/seek",
            access_token,
            params=self._device_params(device_id, position_ms=position_ms),
        )

    async def set_volume(
        self, volume_percent: int, access_token: str, device_id: str | None = None
    ) -> None:
        """Set volume (0-100)."""
        if not 0 <= volume_percent <= 100:
            raise ValidationException("Volume must be between 0 and 100.")
        await self._api_request(
            "PUT",
            "/me/player/volume",
            access_token,
            params=self._device_params(device_id, volume_percent=volume_percent),
        )

    async def set_shuffle(
        self, state: bool, access_token: str, device_id: str | None = None
    ) -> None:
        """Enable/disable shuffle."""
        await self._api_request(
            "PUT",
            "/me/player/shuffle",
            access_token,
            params=self._device_params(device_id, state="true" if state else "false"),
        )

    async def set_repeat(
        self, state: str, access_token: str, device_id: str | None = None
    ) -> None:
        """Set repeat mode: track, context or off."""
        if state not in VALID_REPEAT_STATES:
            raise ValidationException(
                "Invalid repeat mode. Must be 'track', 'context', or 'off'."
            )
        await self._api_request(
            "PUT",
            "/me/player/repeat",
            access_token,
            params=self._device_params(device_id, state=state),
        )
