"""Structured logging configuration with JSON formatting and correlation IDs."""

import contextvars
import logging
import sys
import traceback
import uuid
from pathlib import Path
from typing import Any

from pythonjsonlogger import jsonlogger

# Hey future me, contextvars are asyncio-safe: every task gets its own copy, so a
# correlation id set by the middleware follows the request through services, the Spotify
# client and the commit path. Default "" covers startup logs and background work.
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)


def get_correlation_id() -> str:
    """Get the current correlation ID from context.

    Returns:
        Current correlation ID or empty string if not set
    """
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set correlation ID in context.

    Args:
        correlation_id: Correlation ID to set. If None, generates a new UUID

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


class CorrelationIdFilter(logging.Filter):
    """Add correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add correlation_id to record if available."""
        record.correlation_id = get_correlation_id()
        return True


class CompactExceptionFormatter(logging.Formatter):
    """Formatter that shows exception chains compactly.

    Each exception in the chain (root cause first) gets one ``╰─►`` header line
    followed by only the frames that belong to our own package.

    Example output:
    ERROR │ auratune.application.services.playlist_commit_service:120 │ Commit failed
    ╰─► httpx.ConnectError: All connection attempts failed
        File "spotify_client.py", line 141, in _api_request
          response = await client.request(
    ╰─► TransientUpstreamError: Spotify request failed after 3 attempts
    """

    package_marker = "auratune"

    def formatException(self, ei: Any) -> str:
        """Format exception chain in a compact, readable way.

        Args:
            ei: Exception info tuple (type, value, traceback)

        Returns:
            Formatted exception string with compact chain representation
        """
        _, exc_value, _ = ei
        if exc_value is None:
            return ""

        exceptions: list[BaseException] = []
        current: BaseException | None = exc_value
        while current is not None and current not in exceptions:
            exceptions.append(current)
            current = current.__cause__ or current.__context__

        # Root cause first
        exceptions.reverse()

        lines: list[str] = []
        for exc in exceptions:
            lines.append(f"╰─► {exc.__class__.__name__}: {exc}")

            if exc.__traceback__ is None:
                continue
            for frame in traceback.extract_tb(exc.__traceback__):
                filepath = frame.filename
                if "/site-packages/" in filepath or "/usr/lib/python" in filepath:
                    continue
                if self.package_marker not in filepath:
                    continue
                lines.append(
                    f'    File "{Path(filepath).name}", line {frame.lineno}, in {frame.name}'
                )
                if frame.line:
                    lines.append(f"      {frame.line.strip()}")

        return "\n".join(lines)


class CustomJsonFormatter(jsonlogger.JsonFormatter):  # type: ignore[name-defined,misc]
    """Custom JSON formatter with additional fields."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        """Add custom fields to log record.

        Args:
            log_record: Dictionary to be logged as JSON
            record: Python logging record
            message_dict: Message dictionary from format string
        """
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["line"] = record.lineno

        correlation_id = getattr(record, "correlation_id", "")
        if correlation_id:
            log_record["correlation_id"] = correlation_id

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_record["stack_info"] = self.formatStack(record.stack_info)


# Listen future me, call this ONCE at startup (the lifespan does). It replaces whatever
# handlers the root logger has, which also keeps test reruns from stacking handlers.
def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    app_name: str = "auratune",
) -> None:
    """Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format for logs (recommended for production)
        app_name: Application name to include in logs
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())

    if json_format:
        formatter: logging.Formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = CompactExceptionFormatter(
            fmt="%(asctime)s │ %(levelname)-7s │ %(name)s:%(lineno)d │ %(message)s",
            datefmt="%H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Third-party noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(
        "Logging configured",
        extra={
            "app_name": app_name,
            "log_level": log_level,
            "json_format": json_format,
        },
    )
