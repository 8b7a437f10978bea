"""
Per-provider rate limiting for external metadata APIs.

Hey future me - every provider call made by fixers and bulk jobs goes through one of these
limiters. Token bucket: the bucket holds max_tokens, refills at refill_rate tokens/sec, each
request consumes one. Provider limiters use capacity 1 (no bursts), so requests to e.g.
MusicBrainz are spaced exactly 1/rate seconds apart.

The lock is only held while touching the bucket, never while sleeping. Cancelling a task
that waits for a token therefore leaves the limiter in a clean state.

USAGE:
    limiters = ProviderRateLimiters(settings.providers.rate_limits)

    async with limiters.get("musicbrainz"):
        response = await client.get(url)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from catalogaudit.config.settings import DEFAULT_PROVIDER_RATE_LIMITS

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter."""

    max_tokens: int = 1  # Bucket size
    refill_rate: float = 1.0  # Tokens per second
    max_backoff_seconds: float = 120.0  # Max wait on 429
    initial_backoff_seconds: float = 1.0  # First 429 wait
    backoff_multiplier: float = 2.0  # Exponential backoff factor


@dataclass
class RateLimiter:
    """Token bucket rate limiter with adaptive backoff on 429 responses."""

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"

    _tokens: float = field(default=0.0, init=False)
    _last_refill: float = field(default_factory=time.monotonic, init=False)
    _current_backoff: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        if self.config.refill_rate <= 0:
            raise ValueError(f"RateLimiter[{self.name}]: refill_rate must be positive")
        self._tokens = float(self.config.max_tokens)
        self._current_backoff = self.config.initial_backoff_seconds

    @classmethod
    def for_provider(cls, name: str, requests_per_second: float) -> "RateLimiter":
        """Create a no-burst limiter allowing requests_per_second."""
        return cls(
            config=RateLimiterConfig(max_tokens=1, refill_rate=requests_per_second),
            name=name,
        )

    def _refill_tokens(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(
            float(self.config.max_tokens), self._tokens + elapsed * self.config.refill_rate
        )
        self._last_refill = now

    async def acquire(self) -> None:
        """Acquire one token, waiting if necessary."""
        while True:
            async with self._lock:
                self._refill_tokens()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return
                wait_time = (1.0 - self._tokens) / self.config.refill_rate

            logger.debug(
                f"RateLimiter[{self.name}]: No tokens available, waiting {wait_time:.2f}s"
            )
            await asyncio.sleep(wait_time)

    async def handle_rate_limit_response(self, retry_after: float | None = None) -> float:
        """Back off after a 429, longer on each consecutive one.

        Args:
            retry_after: Retry-After header from API response (seconds)

        Returns:
            The actual wait time used
        """
        async with self._lock:
            wait_time = float(retry_after) if retry_after is not None else self._current_backoff
            wait_time = min(wait_time, self.config.max_backoff_seconds)

            logger.warning(
                f"RateLimiter[{self.name}]: rate limited, waiting {wait_time:.1f}s "
                f"(backoff level: {self._current_backoff:.1f}s)"
            )

            self._current_backoff = min(
                self._current_backoff * self.config.backoff_multiplier,
                self.config.max_backoff_seconds,
            )
            self._tokens = 0.0

        await asyncio.sleep(wait_time)
        return wait_time

    def reset_backoff(self) -> None:
        self._current_backoff = self.config.initial_backoff_seconds

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        if exc_type is None:
            self.reset_backoff()


class ProviderRateLimiters:
    """One shared limiter per provider name."""

    def __init__(self, rates: dict[str, float] | None = None) -> None:
        self._rates = {**DEFAULT_PROVIDER_RATE_LIMITS, **(rates or {})}
        self._limiters: dict[str, RateLimiter] = {}

    def get(self, provider: str) -> RateLimiter:
        """Get the limiter for a provider, creating it on first use.

        Unknown providers get the most conservative rate (1 req/s).
        """
        limiter = self._limiters.get(provider)
        if limiter is None:
            rate = self._rates.get(provider, 1.0)
            limiter = RateLimiter.for_provider(provider, rate)
            self._limiters[provider] = limiter
        return limiter

    @property
    def rates(self) -> dict[str, float]:
        return dict(self._rates)


__all__ = [
    "ProviderRateLimiters",
    "RateLimiter",
    "RateLimiterConfig",
]
