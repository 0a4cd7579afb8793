"""
Resilient Fetcher.

HTTP retrieval that survives rate limits and bot walls: every attempt is
gated per origin, blocked responses are retried with exponential backoff
under a fresh identity, and transport failures are retried linearly. The
fetcher never raises for a failed retrieval; the outcome carries the error.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import httpx

from harvester.config import HarvestConfig
from harvester.constants import (
    BLOCKING_STATUS_CODES,
    CDN_EDGE_SIGNATURES,
    CHALLENGE_STATUS_CODES,
    SLOW_DOMAINS,
)
from harvester.exceptions import ErrorKind
from harvester.infrastructure.identity import headers_for, next_identity
from harvester.infrastructure.rate_limiter import OriginRateLimiter, RateLimitConfig
from harvester.infrastructure.retry import Verdict, retry_with_backoff
from harvester.models import AntiBlockIdentity, FetchOutcome
from harvester.utils.challenge_handler import detect_challenge

logger = logging.getLogger(__name__)


def origin_of(url: str) -> Optional[str]:
    """Scheme + host (+ port) of an http(s) URL, or None if malformed."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


def is_slow_domain(url: str) -> bool:
    """True for showcase domains that need the extended timeout."""
    host = (urlparse(url).hostname or "").lower()
    return any(host == domain or host.endswith("." + domain) for domain in SLOW_DOMAINS)


def _is_edge_challenge(outcome: FetchOutcome) -> bool:
    server = outcome.headers.get("server", "").lower()
    return (
        outcome.status_code in CHALLENGE_STATUS_CODES
        and any(signature in server for signature in CDN_EDGE_SIGNATURES)
    )


def _looks_like_html(outcome: FetchOutcome) -> bool:
    content_type = outcome.content_type.lower()
    return not content_type or "html" in content_type


def is_blocked_response(outcome: FetchOutcome, body: Optional[str] = None) -> bool:
    """
    Detect if a response indicates the server rejected automated access.

    Args:
        outcome: The fetch outcome (status code and headers are inspected)
        body: Optional response body to scan for challenge fingerprints

    Returns:
        True for 403/429, a CDN edge challenge, or a challenge-page body
    """
    if outcome.status_code in BLOCKING_STATUS_CODES:
        return True
    if _is_edge_challenge(outcome):
        return True
    if body and detect_challenge(body):
        return True
    return False


def _classify(outcome: FetchOutcome) -> Verdict:
    if outcome.error == ErrorKind.INVALID_URL:
        return Verdict.FATAL
    if outcome.error == ErrorKind.NETWORK:
        return Verdict.NETWORK
    if outcome.blocked:
        return Verdict.CHALLENGE if _is_edge_challenge(outcome) else Verdict.BLOCKED
    return Verdict.SUCCESS


class ResilientFetcher:
    """
    Gated, retrying HTTP client built on httpx.AsyncClient.

    Usage:
        async with ResilientFetcher(config) as fetcher:
            outcome = await fetcher.fetch("https://example.com/")
            if outcome.ok:
                html = outcome.text
    """

    def __init__(
        self,
        config: Optional[HarvestConfig] = None,
        rate_limiter: Optional[OriginRateLimiter] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the fetcher.

        Args:
            config: Harvest configuration (timeouts, retries, politeness)
            rate_limiter: Shared per-origin gate; one is created if omitted
            client: Externally owned httpx client (e.g. with MockTransport)
            sleep: Coroutine used for backoff waits
            rng: Random source for identity and referer choices
        """
        self.config = config or HarvestConfig()
        self.rate_limiter = rate_limiter or OriginRateLimiter(self.config.rate_limit_config())
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def __aenter__(self):
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True)
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _timeout_for(self, url: str) -> float:
        if is_slow_domain(url):
            return self.config.slow_fetch_timeout_ms / 1000.0
        return self.config.fetch_timeout_ms / 1000.0

    async def _request(
        self,
        url: str,
        identity: AntiBlockIdentity,
        referer: Optional[str],
        attempt: int,
    ) -> FetchOutcome:
        client = self._ensure_client()
        headers = headers_for(identity, referer, self._rng)

        try:
            response = await client.get(url, headers=headers, timeout=self._timeout_for(url))
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            return FetchOutcome(
                url=url,
                error=ErrorKind.INVALID_URL,
                error_message=f"Invalid URL: {e}",
                attempts=attempt,
            )
        except httpx.RequestError as e:
            # Transport failures, redirect loops and undecodable bodies
            return FetchOutcome(
                url=url,
                error=ErrorKind.NETWORK,
                error_message=f"{type(e).__name__}: {e}" if str(e) else type(e).__name__,
                attempts=attempt,
            )

        outcome = FetchOutcome(
            url=url,
            status_code=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            content=response.content,
            attempts=attempt,
        )
        body = outcome.text if _looks_like_html(outcome) else None
        outcome.blocked = is_blocked_response(outcome, body)
        return outcome

    async def fetch(
        self,
        url: str,
        identity: Optional[AntiBlockIdentity] = None,
        max_retries: Optional[int] = None,
        referer: Optional[str] = None,
        rate_limit: Optional[RateLimitConfig] = None,
    ) -> FetchOutcome:
        """
        Fetch a URL with gating, identity rotation and bounded retries.

        Args:
            url: Absolute http(s) URL
            identity: Identity for the first attempt (random if omitted)
            max_retries: Total attempts (defaults to config.fetch_max_retries)
            referer: Explicit referer header
            rate_limit: Per-call politeness budget (e.g. ASSET_RATE_LIMIT)

        Returns:
            FetchOutcome; `blocked`/`error` are set when every attempt failed
        """
        origin = origin_of(url)
        if origin is None:
            return FetchOutcome(
                url=url,
                error=ErrorKind.INVALID_URL,
                error_message=f"Invalid URL: {url}",
            )

        if max_retries is None:
            max_retries = self.config.fetch_max_retries
        current = {"identity": identity or next_identity(self._rng)}

        async def attempt_once(attempt: int) -> FetchOutcome:
            await self.rate_limiter.gate(origin, rate_limit)
            return await self._request(url, current["identity"], referer, attempt)

        def rotate_identity(verdict: Verdict, attempt: int) -> None:
            if verdict in (Verdict.BLOCKED, Verdict.CHALLENGE):
                current["identity"] = next_identity(self._rng)

        outcome = await retry_with_backoff(
            attempt_once,
            _classify,
            max_attempts=max_retries,
            on_retry=rotate_identity,
            sleep=self._sleep,
        )

        if outcome.blocked:
            outcome.error = ErrorKind.BLOCKED
            if _is_edge_challenge(outcome):
                outcome.error_message = f"Cloudflare challenge detected (HTTP {outcome.status_code})"
            else:
                outcome.error_message = f"Blocked: HTTP {outcome.status_code}"
            logger.warning(f"{url} blocked after {outcome.attempts} attempt(s)")
        elif outcome.error is not None:
            logger.warning(f"Fetch failed for {url}: {outcome.describe_failure()}")

        return outcome

    async def get_direct(self, url: str) -> FetchOutcome:
        """One ungated attempt with a fresh identity (stylesheets)."""
        if origin_of(url) is None:
            return FetchOutcome(
                url=url,
                error=ErrorKind.INVALID_URL,
                error_message=f"Invalid URL: {url}",
            )
        return await self._request(url, next_identity(self._rng), None, attempt=1)

    async def check_policy(self, url: str) -> bool:
        """
        Check robots.txt for a blanket disallow of all user agents.

        Fails open: a missing, unreachable or non-200 robots.txt allows
        crawling.

        Args:
            url: Any URL on the site

        Returns:
            False only when the wildcard group disallows the whole site
        """
        origin = origin_of(url)
        if origin is None:
            logger.warning(f"Cannot check robots.txt for malformed URL {url}, assuming allowed")
            return True

        robots_url = f"{origin}/robots.txt"
        outcome = await self.fetch(robots_url, max_retries=1)
        if outcome.error is not None or outcome.status_code != 200:
            logger.warning(
                f"Could not load robots.txt from {robots_url} "
                f"({outcome.describe_failure()}), assuming allowed"
            )
            return True

        rp = RobotFileParser()
        rp.set_url(robots_url)
        rp.parse(outcome.text.splitlines())

        if not rp.can_fetch("*", f"{origin}/"):
            logger.warning(f"robots.txt disallows crawling of {origin}")
            return False
        return True
