# Hey future me - this is the fix for "database is locked" on SQLite!
#
# SQLite allows ONE writer at a time. When a commit and a settings update race, one of
# them gets "database is locked". Waiting a moment and retrying almost always works, so
# repository writes are wrapped in @with_db_retry.
#
# USAGE:
#   @with_db_retry(max_attempts=3)
#   async def add(self, record: PlaylistRecord) -> PlaylistRecord:
#       ...
"""Database retry utilities for handling SQLite lock errors."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def is_lock_error(exception: Exception) -> bool:
    """Check if an exception is a database lock error.

    Args:
        exception: The exception to check

    Returns:
        True if this is a retryable lock error
    """
    if not isinstance(exception, OperationalError):
        return False

    error_msg = str(exception).lower()
    return "locked" in error_msg or "busy" in error_msg


def with_db_retry(
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 5.0,
    backoff_factor: float = 2.0,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator for retrying database operations on lock errors.

    The backoff is exponential: 0.5s → 1s → 2s (capped at max_delay).
    Only "locked"/"busy" OperationalErrors are retried; everything else
    (integrity errors, other OperationalErrors) is raised immediately.

    Args:
        max_attempts: Maximum attempts (default: 3)
        initial_delay: Initial delay in seconds (default: 0.5)
        max_delay: Maximum delay cap in seconds (default: 5.0)
        backoff_factor: Multiply delay by this each retry (default: 2.0)

    Returns:
        Decorated function with automatic retry logic.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            delay = initial_delay

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except OperationalError as e:
                    if not is_lock_error(e) or attempt >= max_attempts - 1:
                        if is_lock_error(e):
                            logger.error(
                                "Database locked after %d attempts, giving up: %s.%s",
                                max_attempts,
                                func.__module__,
                                func.__qualname__,
                            )
                        raise

                    logger.warning(
                        "Database locked (attempt %d/%d), retrying in %.1fs: %s.%s",
                        attempt + 1,
                        max_attempts,
                        delay,
                        func.__module__,
                        func.__qualname__,
                    )
                    await asyncio.sleep(delay)
                    delay = min(delay * backoff_factor, max_delay)

            raise RuntimeError("Unexpected state in retry decorator")

        return wrapper

    return decorator
