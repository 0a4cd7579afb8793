# src/harvester/constants.py
"""Centralized constants for the harvester.

This module contains magic numbers and fixed tables that are used across
multiple modules. For user-configurable values, see config.py and
HarvestConfig.
"""

import re

# =============================================================================
# Crawl Budget Constants
# =============================================================================

# Maximum pages persisted per crawl session
DEFAULT_MAX_PAGES = 100

# Maximum link depth from the seed URL (seed is depth 0)
DEFAULT_MAX_DEPTH = 5

# Hard budget for rendering and extracting one page
DEFAULT_PAGE_TIMEOUT_MS = 15000

# Fixed pause between page visits within one session
DEFAULT_PAGE_DELAY_MS = 500

# Maximum new links enqueued from a single page
MAX_LINKS_PER_PAGE = 50

# Frontier may hold at most this many entries per allowed page
FRONTIER_GROWTH_FACTOR = 2


# =============================================================================
# Fetch Constants
# =============================================================================

# Per-request timeout in milliseconds
DEFAULT_FETCH_TIMEOUT_MS = 30000

# Timeout for known slow / JavaScript-heavy showcase domains
SLOW_FETCH_TIMEOUT_MS = 60000

# Attempts per fetch, including the first one
DEFAULT_MAX_RETRIES = 3

# Base backoff for 403/429 responses: 2^attempt * base
BLOCKED_BACKOFF_BASE_MS = 1000

# Base backoff for Cloudflare-style challenges: 2^attempt * base
CHALLENGE_BACKOFF_BASE_MS = 2000

# Linear backoff for network failures: attempt * step
NETWORK_BACKOFF_STEP_MS = 1000

# Status codes that indicate the server rejected automated access
BLOCKING_STATUS_CODES = frozenset({403, 429})

# Status codes a CDN edge uses for bot challenges
CHALLENGE_STATUS_CODES = frozenset({403, 503})

# Server header signatures of CDN edges that serve bot challenges
CDN_EDGE_SIGNATURES = ("cloudflare",)

# Generic organic-looking referer
SEARCH_ENGINE_REFERER = "https://www.google.com/"


# =============================================================================
# Rate Limit Constants
# =============================================================================

DEFAULT_MIN_DELAY_MS = 2000
DEFAULT_MAX_DELAY_MS = 5000
DEFAULT_MAX_REQUESTS_PER_MINUTE = 30

# Length of the request-count window in seconds
RATE_LIMIT_WINDOW_SECONDS = 60.0


# =============================================================================
# Renderer / Extractor Constants
# =============================================================================

# Settle period after network quiescence for deferred rendering
RENDER_SETTLE_MS = 2000

# Paragraphs at or below this length are treated as boilerplate
MIN_PARAGRAPH_LENGTH = 20

# Maximum anchors kept in structured text
MAX_TEXT_LINKS = 100

# Image download caps
DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024
DEFAULT_MAX_IMAGES = 40

# External scripts whose URL contains any of these are never downloaded
SCRIPT_DENY_LIST = (
    "google-analytics",
    "gtag",
    "googletagmanager",
    "facebook.net",
    "doubleclick",
    "analytics",
)

# Known slow showcase / JavaScript-heavy domains (extended timeouts)
SLOW_DOMAINS = (
    "awwwards.com",
    "cssdesignawards.com",
    "thefwa.com",
)

# Social platforms never treated as a resolved business website
SOCIAL_DOMAINS = (
    "twitter.com",
    "x.com",
    "facebook.com",
    "instagram.com",
    "linkedin.com",
    "youtube.com",
    "pinterest.com",
    "tiktok.com",
)


# =============================================================================
# Crawler URL Filters
# =============================================================================

# URLs matching any of these are files or pseudo-links, not pages
SKIP_URL_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\.pdf$", r"\.docx?$", r"\.xlsx?$", r"\.pptx?$",
        r"\.zip$", r"\.rar$", r"\.tar$", r"\.gz$", r"\.exe$", r"\.dmg$",
        r"\.jpe?g$", r"\.png$", r"\.gif$", r"\.svg$", r"\.webp$", r"\.ico$",
        r"\.mp4$", r"\.mp3$", r"\.avi$", r"\.mov$",
        r"\.css$", r"\.js$", r"\.json$", r"\.xml$",
        r"mailto:", r"tel:", r"javascript:",
        r"\?.*download", r"/download/",
    )
)
