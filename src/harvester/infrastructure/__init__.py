"""
Infrastructure Package.

Provides request identities, per-origin politeness gating and the shared
retry/backoff loop used by the fetcher and asset downloads.
"""

from .identity import (
    IDENTITY_POOL,
    next_identity,
    headers_for,
)
from .rate_limiter import (
    ASSET_RATE_LIMIT,
    OriginRateLimiter,
    RateLimitConfig,
    RateLimitState,
)
from .retry import (
    Verdict,
    retry_with_backoff,
    blocked_backoff_ms,
    challenge_backoff_ms,
    network_backoff_ms,
    default_backoff_ms,
)

__all__ = [
    # Identity
    "IDENTITY_POOL",
    "next_identity",
    "headers_for",
    # Rate Limiter
    "ASSET_RATE_LIMIT",
    "OriginRateLimiter",
    "RateLimitConfig",
    "RateLimitState",
    # Retry
    "Verdict",
    "retry_with_backoff",
    "blocked_backoff_ms",
    "challenge_backoff_ms",
    "network_backoff_ms",
    "default_backoff_ms",
]
