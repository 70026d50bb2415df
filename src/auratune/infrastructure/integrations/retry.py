# Hey future me - this is the transport-level sibling of persistence/retry.py!
#
# Spotify hiccups come in two flavours: the connection itself breaks (timeout, reset,
# refused, protocol error) or Spotify answers 5xx. Both usually go away if we wait a bit.
# This decorator retries exactly those with exponential backoff plus jitter, and lets
# everything else (401/403/404, validation) through untouched on the first attempt.
#
# 429 is NOT handled here. The rate limiter owns that path inside SpotifyClient._api_request
# because it has to honour Retry-After.
#
# USAGE:
#   @with_transport_retry()
#   async def _api_request(self, ...) -> httpx.Response:
#       ...
"""Retry utilities for transient upstream failures."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

import httpx

from auratune.config.settings import RetrySettings
from auratune.domain.exceptions import TransientUpstreamError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def is_transient_error(exception: BaseException) -> bool:
    """Check if an exception is worth retrying.

    Args:
        exception: The exception to check

    Returns:
        True for transport errors and 5xx-derived TransientUpstreamError
    """
    return isinstance(exception, httpx.TransportError | TransientUpstreamError)


# Listen up, a POST that timed out while reading may already have created the playlist or
# added the batch. Only failures that happen before the request leaves us are safe to repeat.
def is_unsent_error(exception: BaseException) -> bool:
    """Check if the request never reached the server (safe to retry non-idempotent calls)."""
    return isinstance(exception, httpx.ConnectError | httpx.ConnectTimeout | httpx.PoolTimeout)


def compute_backoff(
    attempt: int,
    initial_delay: float,
    max_delay: float,
    backoff_factor: float,
    jitter: float,
) -> float:
    """Delay before retry number ``attempt`` (0-based), jitter included."""
    base = min(initial_delay * (backoff_factor**attempt), max_delay)
    return base + random.uniform(0, base * jitter)


def with_transport_retry(
    max_attempts: int | None = None,
    initial_delay: float | None = None,
    max_delay: float | None = None,
    backoff_factor: float | None = None,
    jitter: float | None = None,
    retry_on: Callable[[BaseException], bool] = is_transient_error,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator for retrying async upstream calls on transient failures.

    Unset arguments fall back to ``RetrySettings`` (``RETRY_*`` env vars).
    With the defaults the waits are ~1s, ~2s before the third and final attempt.

    Args:
        max_attempts: Total attempts including the first one
        initial_delay: Delay before the first retry in seconds
        max_delay: Cap on a single delay in seconds
        backoff_factor: Multiply delay by this each retry
        jitter: Extra random fraction of the delay (0.25 = up to +25%)
        retry_on: Predicate deciding which errors are retried

    Returns:
        Decorated coroutine function.

    Raises:
        The last transient error once attempts are exhausted; non-transient
        errors immediately.
    """
    defaults = RetrySettings()
    attempts = max_attempts if max_attempts is not None else defaults.max_attempts
    first_delay = initial_delay if initial_delay is not None else defaults.initial_delay
    cap = max_delay if max_delay is not None else defaults.max_delay
    factor = backoff_factor if backoff_factor is not None else defaults.backoff_factor
    spread = jitter if jitter is not None else defaults.jitter

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(attempts):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not retry_on(e) or attempt >= attempts - 1:
                        if retry_on(e):
                            logger.error(
                                "Upstream call failed after %d attempts, giving up: %s.%s (%s)",
                                attempts,
                                func.__module__,
                                func.__qualname__,
                                type(e).__name__,
                            )
                        raise

                    delay = compute_backoff(attempt, first_delay, cap, factor, spread)
                    logger.warning(
                        "Transient upstream error (attempt %d/%d), retrying in %.2fs: %s",
                        attempt + 1,
                        attempts,
                        delay,
                        type(e).__name__,
                    )
                    await asyncio.sleep(delay)

            raise RuntimeError("Unexpected state in retry decorator")

        return wrapper

    return decorator
