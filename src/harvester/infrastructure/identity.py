"""
Anti-block request identities.

A pool of realistic browser signatures, each paired with a header bundle
that is consistent with it: client hints only for Chromium browsers, a
mobile platform only for mobile user agents, Safari's own Accept string.
"""

import random
from typing import Dict, Optional

from harvester.constants import SEARCH_ENGINE_REFERER
from harvester.models import AntiBlockIdentity


IDENTITY_POOL = (
    # Chrome on Windows
    AntiBlockIdentity("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36", "chrome", "Windows"),
    AntiBlockIdentity("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36", "chrome", "Windows"),
    AntiBlockIdentity("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36", "chrome", "Windows"),
    # Chrome on macOS
    AntiBlockIdentity("Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36", "chrome", "macOS"),
    AntiBlockIdentity("Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36", "chrome", "macOS"),
    # Chrome on Linux
    AntiBlockIdentity("Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36", "chrome", "Linux"),
    # Edge on Windows
    AntiBlockIdentity("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36 Edg/121.0.0.0", "edge", "Windows"),
    # Opera
    AntiBlockIdentity("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 OPR/106.0.0.0", "opera", "Windows"),
    # Firefox
    AntiBlockIdentity("Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:122.0) Gecko/20100101 Firefox/122.0", "firefox", "Windows"),
    AntiBlockIdentity("Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0", "firefox", "Windows"),
    AntiBlockIdentity("Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) Gecko/20100101 Firefox/121.0", "firefox", "macOS"),
    # Safari on macOS
    AntiBlockIdentity("Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15", "safari", "macOS"),
    AntiBlockIdentity("Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15", "safari", "macOS"),
    # Chrome on Android
    AntiBlockIdentity("Mozilla/5.0 (Linux; Android 14; Pixel 7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36", "chrome", "Android", mobile=True),
    AntiBlockIdentity("Mozilla/5.0 (Linux; Android 13; SM-G991B) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36", "chrome", "Android", mobile=True),
    # Safari on iPhone / iPad
    AntiBlockIdentity("Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1", "safari", "iOS", mobile=True),
    AntiBlockIdentity("Mozilla/5.0 (iPhone; CPU iPhone OS 16_6 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1", "safari", "iOS", mobile=True),
    AntiBlockIdentity("Mozilla/5.0 (iPad; CPU OS 17_1 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1", "safari", "iOS", mobile=True),
)

# Brand lists for the sec-ch-ua client hint
_CLIENT_HINT_BRANDS = {
    "chrome": '"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"',
    "edge": '"Not_A Brand";v="8", "Chromium";v="121", "Microsoft Edge";v="121"',
    "opera": '"Not_A Brand";v="8", "Chromium";v="120", "Opera";v="106"',
}

_DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8"
_SAFARI_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


def next_identity(rng: Optional[random.Random] = None) -> AntiBlockIdentity:
    """Pick an identity uniformly at random from the pool."""
    return (rng or random).choice(IDENTITY_POOL)


def headers_for(
    identity: AntiBlockIdentity,
    referer: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, str]:
    """
    Build a header bundle consistent with an identity.

    Args:
        identity: The identity the request impersonates
        referer: Explicit referer; when None, a search engine referer is
            added half of the time
        rng: Optional random source (tests)

    Returns:
        Header dictionary ready for an HTTP client
    """
    rng = rng or random

    headers = {
        "User-Agent": identity.user_agent,
        "Accept": _SAFARI_ACCEPT if identity.family == "safari" else _DEFAULT_ACCEPT,
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate, br",
        "Connection": "keep-alive",
        "DNT": "1",
        "Upgrade-Insecure-Requests": "1",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "same-origin" if referer else "none",
        "Cache-Control": "max-age=0",
    }

    if referer:
        headers["Referer"] = referer
    elif rng.random() < 0.5:
        headers["Referer"] = SEARCH_ENGINE_REFERER

    # Client hints exist only in Chromium-based browsers
    if identity.is_chromium:
        headers["sec-ch-ua"] = _CLIENT_HINT_BRANDS[identity.family]
        headers["sec-ch-ua-mobile"] = "?1" if identity.mobile else "?0"
        headers["sec-ch-ua-platform"] = f'"{identity.platform}"'

    return headers
