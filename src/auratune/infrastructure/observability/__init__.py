"""Observability infrastructure for structured logging."""

from auratune.infrastructure.observability.logger_template import (
    log_operation,
    log_slow_operation,
)
from auratune.infrastructure.observability.logging import (
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)
from auratune.infrastructure.observability.middleware import RequestLoggingMiddleware

__all__ = [
    "RequestLoggingMiddleware",
    "configure_logging",
    "get_correlation_id",
    "log_operation",
    "log_slow_operation",
    "set_correlation_id",
]
