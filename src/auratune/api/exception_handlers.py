"""Custom exception handlers for FastAPI application.

This module registers global exception handlers that convert domain exceptions
and validation errors into proper HTTP responses with appropriate status codes.
It also maps ActionResult error codes to status codes for routers that turn a
failed service result into an HTTP error.
"""

import json
import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from auratune.domain.dtos import ActionResult
from auratune.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    DuplicateEntityException,
    EntityNotFoundException,
    ExternalServiceError,
    InvalidStateException,
    RateLimitExceededError,
    ValidationException,
)

logger = logging.getLogger(__name__)

# Hey future me, services never raise across their boundary; they return ActionResult with a
# short error_code. This table is how routers pick the HTTP status for a failed result. Stage
# names from the generation pipeline land here too: a template that doesn't exist fails at
# "resolving_context" and becomes 404 only through the explicit not_found code, so most
# pipeline stages fall through to 502/422 below.
_ERROR_CODE_STATUS: dict[str, int] = {
    "validation": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "unauthenticated": status.HTTP_401_UNAUTHORIZED,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "premium_required": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "no_active_device": status.HTTP_409_CONFLICT,
    "no_track": status.HTTP_409_CONFLICT,
    "rate_limited": status.HTTP_429_TOO_MANY_REQUESTS,
    "upstream": status.HTTP_502_BAD_GATEWAY,
    "create_failed": status.HTTP_502_BAD_GATEWAY,
    "add_tracks_failed": status.HTTP_502_BAD_GATEWAY,
    "record_inconsistency": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "database": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "resolving_context": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "generating_suggestions": status.HTTP_502_BAD_GATEWAY,
    "validating_tracks": status.HTTP_502_BAD_GATEWAY,
    "checking_yield": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "computing_metadata": status.HTTP_502_BAD_GATEWAY,
    "assembling_preview": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for_error_code(error_code: str | None) -> int:
    """HTTP status for a failed ActionResult's error_code (400 when unknown)."""
    if error_code is None:
        return status.HTTP_400_BAD_REQUEST
    return _ERROR_CODE_STATUS.get(error_code, status.HTTP_400_BAD_REQUEST)


def raise_for_result(result: ActionResult[Any]) -> None:
    """Raise HTTPException when ``result`` failed; no-op on success."""
    if result.is_success:
        return
    raise HTTPException(
        status_code=status_for_error_code(result.error_code),
        detail={"message": result.message, "error_code": result.error_code},
    )


def _sanitize_validation_errors(
    errors: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Sanitize validation errors by converting bytes to strings.

    Args:
        errors: List of validation error dictionaries from Pydantic

    Returns:
        Sanitized list where bytes are converted to strings
    """

    def _sanitize_value(value: Any) -> Any:
        if isinstance(value, bytes):
            try:
                return value.decode("utf-8")
            except UnicodeDecodeError:
                return value.decode("latin-1")
        elif isinstance(value, dict):
            return {k: _sanitize_value(v) for k, v in value.items()}
        elif isinstance(value, list | tuple):
            return [_sanitize_value(item) for item in value]
        return value

    return [_sanitize_value(error) for error in errors]


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers for domain and validation exceptions.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(ValidationException)
    async def validation_exception_handler(
        request: Request, exc: ValidationException
    ) -> JSONResponse:
        """Handle domain validation exceptions with 422 Unprocessable Entity."""
        logger.warning(
            "Validation error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": exc.message},
        )

    @app.exception_handler(EntityNotFoundException)
    async def entity_not_found_exception_handler(
        request: Request, exc: EntityNotFoundException
    ) -> JSONResponse:
        """Handle entity not found exceptions with 404 Not Found."""
        logger.info(
            "Entity not found at %s: %s %s",
            request.url.path,
            exc.entity_type,
            exc.entity_id,
            extra={
                "path": request.url.path,
                "entity_type": exc.entity_type,
                "entity_id": str(exc.entity_id),
            },
        )
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": exc.message},
        )

    @app.exception_handler(DuplicateEntityException)
    async def duplicate_entity_exception_handler(
        request: Request, exc: DuplicateEntityException
    ) -> JSONResponse:
        """Handle duplicate entity exceptions with 409 Conflict."""
        logger.warning(
            "Duplicate entity at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": exc.message},
        )

    # NoActiveDeviceError is an InvalidStateException, so it lands here as 409.
    @app.exception_handler(InvalidStateException)
    async def invalid_state_exception_handler(
        request: Request, exc: InvalidStateException
    ) -> JSONResponse:
        """Handle invalid state exceptions with 409 Conflict."""
        logger.warning(
            "Invalid state at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic request validation errors with 422 Unprocessable Entity."""
        sanitized_errors = _sanitize_validation_errors(list(exc.errors()))
        logger.warning(
            "Request validation error at %s: %s",
            request.url.path,
            sanitized_errors,
            extra={"path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": sanitized_errors},
        )

    @app.exception_handler(json.JSONDecodeError)
    async def json_decode_error_handler(
        request: Request, exc: json.JSONDecodeError
    ) -> JSONResponse:
        """Handle malformed JSON with 400 Bad Request."""
        logger.warning(
            "Malformed JSON at %s: %s",
            request.url.path,
            str(exc),
            extra={"path": request.url.path, "error": str(exc)},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": f"Malformed JSON: {exc.msg}"},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle HTTP exceptions with proper logging."""
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "HTTP error %d at %s: %s",
            exc.status_code,
            request.url.path,
            exc.detail,
            extra={"path": request.url.path, "status_code": exc.status_code},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        """Handle configuration errors with 503 Service Unavailable."""
        logger.error(
            "Configuration error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": exc.message},
        )

    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(
        request: Request, exc: AuthenticationError
    ) -> JSONResponse:
        """Handle authentication errors with 401 Unauthorized."""
        logger.warning(
            "Authentication error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": exc.message},
        )

    @app.exception_handler(AuthorizationError)
    async def authorization_error_handler(
        request: Request, exc: AuthorizationError
    ) -> JSONResponse:
        """Handle authorization errors (incl. Premium required) with 403 Forbidden."""
        logger.warning(
            "Authorization error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"detail": exc.message},
        )

    @app.exception_handler(ExternalServiceError)
    async def external_service_error_handler(
        request: Request, exc: ExternalServiceError
    ) -> JSONResponse:
        """Handle external service errors with 502 Bad Gateway."""
        logger.error(
            "External service error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": exc.message},
        )

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_exceeded_handler(
        request: Request, exc: RateLimitExceededError
    ) -> JSONResponse:
        """Handle rate limit errors with 429 Too Many Requests."""
        logger.warning(
            "Rate limit exceeded at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        headers = (
            {"Retry-After": str(exc.retry_after)} if exc.retry_after is not None else None
        )
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"detail": exc.message},
            headers=headers,
        )

    @app.exception_handler(OperationalError)
    async def database_operational_error_handler(
        request: Request, exc: OperationalError
    ) -> JSONResponse:
        """Handle SQLAlchemy OperationalError; locked/busy databases get 503 + Retry-After."""
        error_msg = str(exc).lower()
        if "locked" in error_msg or "busy" in error_msg:
            logger.warning(
                "Database busy at %s",
                request.url.path,
                extra={"path": request.url.path, "error": str(exc)[:200]},
            )
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"detail": "Database is busy. Please try again."},
                headers={"Retry-After": "3"},
            )

        logger.error(
            "Database error at %s: %s",
            request.url.path,
            str(exc)[:500],
            extra={"path": request.url.path, "error": str(exc)[:500]},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Database error occurred. Please try again."},
        )
