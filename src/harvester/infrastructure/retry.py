"""
Retry with an outcome classifier and a backoff policy.

One loop shared by page fetches and asset downloads. The operation returns
an outcome value instead of raising; the classifier decides whether that
outcome is final, and the backoff function decides how long to wait.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

from harvester.constants import (
    BLOCKED_BACKOFF_BASE_MS,
    CHALLENGE_BACKOFF_BASE_MS,
    NETWORK_BACKOFF_STEP_MS,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Verdict(str, Enum):
    """How an attempt's outcome should be treated."""

    SUCCESS = "success"
    BLOCKED = "blocked"
    CHALLENGE = "challenge"
    NETWORK = "network"
    FATAL = "fatal"

    @property
    def retryable(self) -> bool:
        return self in (Verdict.BLOCKED, Verdict.CHALLENGE, Verdict.NETWORK)


def blocked_backoff_ms(attempt: int) -> int:
    """403/429 backoff: 2000, 4000, 8000 ms for attempts 1, 2, 3."""
    return (2 ** attempt) * BLOCKED_BACKOFF_BASE_MS


def challenge_backoff_ms(attempt: int) -> int:
    """Cloudflare-style backoff: 4000, 8000, 16000 ms for attempts 1, 2, 3."""
    return (2 ** attempt) * CHALLENGE_BACKOFF_BASE_MS


def network_backoff_ms(attempt: int) -> int:
    """Linear backoff for transport failures."""
    return NETWORK_BACKOFF_STEP_MS * attempt


def default_backoff_ms(verdict: Verdict, attempt: int) -> int:
    if verdict is Verdict.CHALLENGE:
        return challenge_backoff_ms(attempt)
    if verdict is Verdict.BLOCKED:
        return blocked_backoff_ms(attempt)
    return network_backoff_ms(attempt)


async def retry_with_backoff(
    operation: Callable[[int], Awaitable[T]],
    classify: Callable[[T], Verdict],
    max_attempts: int,
    backoff_ms: Callable[[Verdict, int], int] = default_backoff_ms,
    on_retry: Optional[Callable[[Verdict, int], None]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run `operation` until it succeeds, fails fatally, or attempts run out.

    Args:
        operation: Coroutine factory receiving the 1-based attempt number
        classify: Maps an outcome to a Verdict
        max_attempts: Total attempts allowed (at least one is made)
        backoff_ms: Wait before the next attempt, given verdict and attempt
        on_retry: Hook called before sleeping (e.g. to rotate identity)
        sleep: Coroutine used to suspend

    Returns:
        The last outcome produced by `operation`
    """
    max_attempts = max(1, max_attempts)
    attempt = 1

    while True:
        outcome = await operation(attempt)
        verdict = classify(outcome)

        if not verdict.retryable or attempt >= max_attempts:
            return outcome

        delay_ms = backoff_ms(verdict, attempt)
        logger.warning(
            f"Attempt {attempt}/{max_attempts} {verdict.value}, "
            f"retrying in {delay_ms}ms"
        )
        if on_retry:
            on_retry(verdict, attempt)
        await sleep(delay_ms / 1000.0)
        attempt += 1
