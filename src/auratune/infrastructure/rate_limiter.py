"""
Rate limiter for Spotify Web API calls.

Token bucket with adaptive backoff on 429:
- Bucket holds max_tokens, refilled at refill_rate tokens/sec
- Each request consumes one token; an empty bucket means waiting
- Repeated 429s double the wait (1s, 2s, 4s, ...) until a success resets it
- A Retry-After header always wins over the computed backoff

USAGE:
    limiter = get_spotify_limiter()

    async with limiter:
        response = await client.get(url)

    # On 429:
    await limiter.handle_rate_limit_response(retry_after)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter.

    Spotify allows roughly 180 requests/minute; 2 req/sec sustained leaves
    headroom. max_backoff_seconds stays high because Spotify sends Retry-After
    values of several minutes under heavy use, and capping below that just
    earns another 429.
    """

    max_tokens: int = 10  # Bucket size
    refill_rate: float = 2.0  # Tokens per second
    max_backoff_seconds: float = 600.0
    initial_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0


@dataclass
class RateLimiter:
    """Token Bucket Rate Limiter with adaptive backoff.

    Attributes:
        config: Rate limiter configuration
        _tokens: Current available tokens
        _last_refill: Last time tokens were refilled
        _current_backoff: Current backoff delay (resets on success)
        _lock: Async lock guarding the bucket
    """

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)

    _tokens: float = field(default=0.0, init=False)
    _last_refill: float = field(default_factory=time.monotonic, init=False)
    _current_backoff: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)
    _name: str = field(default="default", init=False)

    def __post_init__(self) -> None:
        """Initialize tokens to max capacity."""
        self._tokens = float(self.config.max_tokens)
        self._current_backoff = self.config.initial_backoff_seconds

    @classmethod
    def for_spotify(cls) -> "RateLimiter":
        """Create rate limiter tuned for the Spotify Web API."""
        limiter = cls(
            config=RateLimiterConfig(
                max_tokens=10,  # Burst capacity
                refill_rate=2.0,  # Sustained rate
                max_backoff_seconds=600.0,
                initial_backoff_seconds=1.0,
            )
        )
        limiter._name = "spotify"
        return limiter

    def _refill_tokens(self) -> None:
        """Refill tokens based on elapsed time."""
        now = time.monotonic()
        elapsed = now - self._last_refill

        new_tokens = elapsed * self.config.refill_rate
        self._tokens = min(self.config.max_tokens, self._tokens + new_tokens)
        self._last_refill = now

    async def acquire(self) -> None:
        """Acquire one token, waiting if necessary."""
        async with self._lock:
            self._refill_tokens()

            while self._tokens < 1.0:
                wait_time = (1.0 - self._tokens) / self.config.refill_rate
                logger.debug(
                    "RateLimiter[%s]: No tokens available, waiting %.2fs",
                    self._name,
                    wait_time,
                )

                # Release lock while waiting
                self._lock.release()
                try:
                    await asyncio.sleep(wait_time)
                finally:
                    await self._lock.acquire()

                self._refill_tokens()

            self._tokens -= 1.0

    async def handle_rate_limit_response(self, retry_after: int | None = None) -> float:
        """Handle a 429 rate limit response with adaptive backoff.

        Args:
            retry_after: Retry-After header from API response (seconds)

        Returns:
            The actual wait time used
        """
        async with self._lock:
            if retry_after is not None:
                wait_time = float(retry_after)
            else:
                wait_time = self._current_backoff

            wait_time = min(wait_time, self.config.max_backoff_seconds)

            logger.warning(
                "RateLimiter[%s]: 429 Rate Limited! Waiting %.1fs before retry "
                "(backoff level: %.1fs)",
                self._name,
                wait_time,
                self._current_backoff,
            )

            self._current_backoff = min(
                self._current_backoff * self.config.backoff_multiplier,
                self.config.max_backoff_seconds,
            )

            # Force the next acquire to wait for a refill
            self._tokens = 0.0

        await asyncio.sleep(wait_time)
        return wait_time

    def reset_backoff(self) -> None:
        """Reset backoff after a successful request."""
        self._current_backoff = self.config.initial_backoff_seconds

    async def __aenter__(self) -> "RateLimiter":
        """Enter async context - acquire token."""
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        """Exit async context."""
        if exc_type is None:
            self.reset_backoff()

    @property
    def available_tokens(self) -> float:
        """Get current available tokens (for debugging)."""
        self._refill_tokens()
        return self._tokens

    @property
    def name(self) -> str:
        """Get limiter name for logging."""
        return self._name


# One limiter per upstream, shared by every request in the process.
_spotify_limiter: RateLimiter | None = None


def get_spotify_limiter() -> RateLimiter:
    """Get singleton Spotify rate limiter."""
    global _spotify_limiter
    if _spotify_limiter is None:
        _spotify_limiter = RateLimiter.for_spotify()
    return _spotify_limiter


__all__ = [
    "RateLimiter",
    "RateLimiterConfig",
    "get_spotify_limiter",
]
