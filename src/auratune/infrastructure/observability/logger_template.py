"""Shared logger utilities.

USAGE:
    from auratune.infrastructure.observability.logger_template import log_operation

    logger = logging.getLogger(__name__)

    async with log_operation(logger, "playlist_commit", user_id="u1"):
        await commit()
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any


# Yo, this is the timing wrapper every pipeline stage uses. The **context fields end up on
# the started/completed/failed records as structured extras. On exception it logs with
# exc_info and re-raises; callers still decide what to do with the error.
@asynccontextmanager
async def log_operation(
    logger: logging.Logger,
    operation: str,
    **context: Any,
) -> AsyncIterator[dict[str, Any]]:
    """Context manager for logging operation start/end with automatic timing.

    Logs:
    - {operation}.started with context fields
    - {operation}.completed with context + duration_ms
    - {operation}.failed with context + duration_ms + error details (if exception)
    - {operation}.failed at WARNING when the caller set ``outcome["error"]`` and
      returned a failure result instead of raising

    The yielded dict can be filled in by the caller; its keys are added to the
    completion record (e.g. result counts).

    Args:
        logger: Module logger
        operation: Operation name (e.g., "validate_tracks", "playlist_commit")
        **context: Additional fields to include in logs

    Example:
        >>> async with log_operation(logger, "validate_tracks", count=20) as outcome:
        ...     accepted = await validate()
        ...     outcome["accepted"] = len(accepted)
    """
    start = time.monotonic()
    outcome: dict[str, Any] = {}
    logger.info(f"{operation}.started", extra=context)

    try:
        yield outcome
    except Exception as e:
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.error(
            f"{operation}.failed",
            extra={
                **context,
                "duration_ms": duration_ms,
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise

    duration_ms = int((time.monotonic() - start) * 1000)
    if outcome.get("error"):
        logger.warning(
            f"{operation}.failed",
            extra={**context, **outcome, "duration_ms": duration_ms},
        )
        return
    logger.info(
        f"{operation}.completed",
        extra={**context, **outcome, "duration_ms": duration_ms},
    )


def log_slow_operation(
    logger: logging.Logger,
    operation: str,
    duration_ms: int,
    threshold_ms: int = 100,
    **context: Any,
) -> None:
    """Log warning if operation exceeded threshold.

    Args:
        logger: Logger instance
        operation: Operation name
        duration_ms: Actual operation duration
        threshold_ms: Threshold for "slow" (default: 100ms)
        **context: Additional fields (e.g., endpoint)
    """
    if duration_ms > threshold_ms:
        logger.warning(
            "operation.slow",
            extra={
                **context,
                "operation": operation,
                "duration_ms": duration_ms,
                "threshold_ms": threshold_ms,
            },
        )
