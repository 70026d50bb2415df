"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is kept as an attribute so handlers and ActionResult
    # builders can read it without parsing str(exc). Don't raise this base directly.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any, message: str | None = None) -> None:
        super().__init__(message or f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(DomainException):
    """Raised when input or entity validation fails.

    Never retried: the same input fails the same way every time.
    """

    pass


class InvalidStateException(DomainException):
    """Raised when an entity is in an invalid state for the requested operation.

    Example: asking for the next track while no device is active.
    """

    pass


class DuplicateEntityException(DomainException):
    """Raised when trying to create a duplicate entity."""

    # Yo, this guards the "one record per remote playlist" rule. The repository translates
    # the DB unique violation into this so the commit service can report it cleanly.
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} already exists")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ConfigurationError(DomainException):
    """Application misconfiguration.

    HTTP Status: 503 (Service Unavailable)

    Example:
        raise ConfigurationError("OPENROUTER_API_KEY is not configured")
    """

    pass


class AuthenticationError(DomainException):
    """User is not authenticated or the bearer token expired.

    HTTP Status: 401
    """

    pass


class AuthorizationError(DomainException):
    """User is authenticated but not allowed to do this.

    HTTP Status: 403
    """

    pass


class PremiumRequiredError(AuthorizationError):
    """Spotify refused a playback command because the account is not Premium.

    HTTP Status: 403
    """

    def __init__(
        self, message: str = "This action requires a Spotify Premium account."
    ) -> None:
        super().__init__(message)


class NoActiveDeviceError(InvalidStateException):
    """No Spotify Connect device is available to receive the command.

    HTTP Status: 409
    """

    def __init__(
        self,
        message: str = "No active Spotify device found. Please start playback on a device.",
    ) -> None:
        super().__init__(message)


class ExternalServiceError(DomainException):
    """External service (Spotify, OpenRouter) returned an error.

    HTTP Status: 502 (Bad Gateway)

    Example:
        raise ExternalServiceError("Spotify API error: 400 Bad Request")
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientUpstreamError(ExternalServiceError):
    """Upstream failure that is worth retrying (5xx, dropped connection).

    Raised by the Spotify client once its own retries are exhausted.

    HTTP Status: 503
    """

    pass


class RateLimitExceededError(DomainException):
    """External service rate limit was exceeded.

    HTTP Status: 429

    Example:
        raise RateLimitExceededError("Spotify rate limit exceeded", retry_after=30)
    """

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class SuggestionFormatError(ExternalServiceError):
    """The text generator answered, but not with a usable song list."""

    pass


__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "ConfigurationError",
    "DomainException",
    "DuplicateEntityException",
    "EntityNotFoundException",
    "ExternalServiceError",
    "InvalidStateException",
    "NoActiveDeviceError",
    "PremiumRequiredError",
    "RateLimitExceededError",
    "SuggestionFormatError",
    "TransientUpstreamError",
    "ValidationException",
]
