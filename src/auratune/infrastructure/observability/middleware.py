"""Middleware for observability: request/response logging."""

import logging
import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from auratune.infrastructure.observability.logger_template import log_slow_operation
from auratune.infrastructure.observability.logging import (
    get_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)


# Hey future me, this runs before every route. It picks up X-Correlation-ID (or mints one),
# stores it in the contextvar so every log line of the request carries it, and echoes it back
# on the response. Player state polls hit /api/player/state every second; those are logged at
# DEBUG so they don't drown everything else.
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses."""

    QUIET_PATHS = ("/api/player/state", "/health")
    SLOW_REQUEST_MS = 2000

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Process request and log details.

        Args:
            request: Incoming request
            call_next: Next middleware/handler in chain

        Returns:
            Response from application
        """
        set_correlation_id(request.headers.get("X-Correlation-ID"))

        method = request.method
        path = request.url.path
        level = logging.DEBUG if path.startswith(self.QUIET_PATHS) else logging.INFO

        logger.log(
            level,
            f"→ {method} {path}",
            extra={
                "method": method,
                "path": path,
                "client_ip": request.client.host if request.client else "unknown",
            },
        )

        start_time = time.monotonic()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                f"Request failed: {method} {path}",
                extra={
                    "method": method,
                    "path": path,
                    "duration_ms": int((time.monotonic() - start_time) * 1000),
                    "error_type": type(e).__name__,
                },
            )
            raise

        duration_ms = int((time.monotonic() - start_time) * 1000)
        status_mark = "✓" if response.status_code < 400 else "✗"
        logger.log(
            level,
            f"{status_mark} {method} {path} → {response.status_code} ({duration_ms}ms)",
            extra={
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        log_slow_operation(
            logger,
            "http_request",
            duration_ms,
            threshold_ms=self.SLOW_REQUEST_MS,
            method=method,
            path=path,
        )

        response.headers["X-Correlation-ID"] = get_correlation_id()
        return response
