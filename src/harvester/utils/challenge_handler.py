"""
Challenge/CAPTCHA detection for fetched and rendered pages.

Works on response bodies rather than live pages so the same fingerprints
apply to plain HTTP fetches and to the DOM serialized by the renderer.
"""
import logging
from typing import Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Challenge Fingerprints
# =============================================================================

# Interstitial markers: any occurrence means the body is a challenge page.
# Cloudflare also injects /cdn-cgi/challenge-platform/scripts/jsd/ into
# ordinary pages, so only the interstitial path (/h/) counts.
CHALLENGE_INDICATORS = {
    "cloudflare_challenge": [
        "cf-browser-verification",
        "cf-challenge",
        "_cf_chl_opt",
        "/cdn-cgi/challenge-platform/h/",
        "checking your browser",
        "just a moment...</title>",
        "ddos protection by cloudflare",
        "attention required! | cloudflare",
    ],
    "challenge_text": [
        "verify you are human",
        "verify you're human",
        "please complete the security check",
        "complete the captcha",
    ],
}

# CAPTCHA widgets also appear in ordinary contact forms, so they only count
# on short bodies that are little more than the widget itself
CAPTCHA_WIDGET_INDICATORS = {
    "recaptcha": [
        "g-recaptcha",
        "recaptcha/api.js",
    ],
    "hcaptcha": [
        "h-captcha",
        "hcaptcha.com/1/api.js",
    ],
    "turnstile": [
        "cf-turnstile",
        "challenges.cloudflare.com/turnstile",
    ],
}

CAPTCHA_PAGE_MAX_LENGTH = 15000

# URL patterns that indicate a challenge page
CHALLENGE_URL_PATTERNS = [
    "captcha",
    "/cdn-cgi/challenge",
    "security-check",
]


# =============================================================================
# Challenge Detection
# =============================================================================

def detect_challenge(html: Optional[str], url: Optional[str] = None) -> Optional[str]:
    """
    Detect if a page body is a CAPTCHA or bot challenge.

    Args:
        html: Response body or serialized DOM
        url: Optional final URL of the page

    Returns:
        Name of detected challenge type, or None if no challenge found
    """
    if url:
        current_url = url.lower()
        for pattern in CHALLENGE_URL_PATTERNS:
            if pattern in current_url:
                return f"url_pattern:{pattern}"

    if not html:
        return None

    html_lower = html.lower()
    for name, fingerprints in CHALLENGE_INDICATORS.items():
        for fingerprint in fingerprints:
            if fingerprint in html_lower:
                return name

    if len(html_lower) <= CAPTCHA_PAGE_MAX_LENGTH:
        for name, fingerprints in CAPTCHA_WIDGET_INDICATORS.items():
            for fingerprint in fingerprints:
                if fingerprint in html_lower:
                    return name

    return None


def is_challenge_page(html: Optional[str], url: Optional[str] = None) -> bool:
    """Check if a page body has any challenge."""
    return detect_challenge(html, url) is not None
