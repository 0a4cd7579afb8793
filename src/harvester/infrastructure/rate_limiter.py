"""
Per-origin politeness gate.

Every request to an origin passes through `OriginRateLimiter.gate()`, which
enforces a requests-per-minute cap and a randomized delay between requests
so the cadence never looks mechanical.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Dict, Optional, Tuple

from harvester.constants import (
    DEFAULT_MAX_DELAY_MS,
    DEFAULT_MAX_REQUESTS_PER_MINUTE,
    DEFAULT_MIN_DELAY_MS,
    RATE_LIMIT_WINDOW_SECONDS,
)

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for the politeness gate."""
    # Randomized delay before each request (milliseconds)
    min_delay_ms: int = DEFAULT_MIN_DELAY_MS
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS

    # Hard cap per origin within a 60 second window
    max_requests_per_minute: int = DEFAULT_MAX_REQUESTS_PER_MINUTE

    # Requests in different buckets keep separate windows and spacing
    bucket: str = "page"


# Lighter budget for scripts and images, counted apart from page requests
ASSET_RATE_LIMIT = RateLimitConfig(
    min_delay_ms=25,
    max_delay_ms=100,
    max_requests_per_minute=120,
    bucket="asset",
)


@dataclass
class RateLimitState:
    """Request bookkeeping for a single origin."""
    last_request_at: Optional[float] = None
    request_count: int = 0
    window_started_at: Optional[float] = None


class OriginRateLimiter:
    """
    Politeness gate keyed by origin and bucket.

    State for each (origin, bucket) pair is guarded by its own asyncio.Lock,
    held for the whole gate operation, so concurrent callers on one origin
    are serialized while different origins never wait on each other. Asset
    downloads use their own bucket and never consume the page window.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize rate limiter.

        Args:
            config: Default configuration for gate() calls
            clock: Monotonic clock in seconds
            sleep: Coroutine used to suspend
            rng: Random source for the inter-request delay
        """
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()

        self._states: Dict[Tuple[str, str], RateLimitState] = {}
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}

        # Statistics
        self._total_wait_time = 0.0

    def _lock_for(self, key: Tuple[str, str]) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks.setdefault(key, asyncio.Lock())
        return lock

    async def gate(self, origin: str, config: Optional[RateLimitConfig] = None) -> float:
        """
        Suspend until a request to `origin` is permitted.

        Args:
            origin: Scheme + host (+ port) the request targets
            config: Optional per-call configuration

        Returns:
            Total time waited (seconds)
        """
        config = config or self.config
        key = (origin, config.bucket)
        waited = 0.0

        async with self._lock_for(key):
            state = self._states.setdefault(key, RateLimitState())
            now = self._clock()

            if state.window_started_at is None or now - state.window_started_at >= RATE_LIMIT_WINDOW_SECONDS:
                state.window_started_at = now
                state.request_count = 0

            if state.request_count >= config.max_requests_per_minute:
                remaining = RATE_LIMIT_WINDOW_SECONDS - (now - state.window_started_at)
                if remaining > 0:
                    logger.info(
                        f"Rate limit reached for {origin} [{config.bucket}] "
                        f"({state.request_count}/{config.max_requests_per_minute}), "
                        f"waiting {remaining:.1f}s"
                    )
                    await self._sleep(remaining)
                    waited += remaining
                state.request_count = 0
                state.window_started_at = self._clock()

            delay = self._rng.uniform(config.min_delay_ms, config.max_delay_ms) / 1000.0
            if delay > 0:
                await self._sleep(delay)
                waited += delay

            state.last_request_at = self._clock()
            state.request_count += 1

        self._total_wait_time += waited
        return waited

    def state(self, origin: str, bucket: str = "page") -> Optional[RateLimitState]:
        """Snapshot of an origin's state in one bucket (None if never gated)."""
        state = self._states.get((origin, bucket))
        return replace(state) if state else None

    def reset(self, origin: Optional[str] = None) -> None:
        """Forget state for one origin (every bucket), or for all origins."""
        if origin is None:
            self._states.clear()
        else:
            for key in [key for key in self._states if key[0] == origin]:
                del self._states[key]

    @property
    def total_wait_time(self) -> float:
        """Cumulative time spent waiting in gate()."""
        return self._total_wait_time
