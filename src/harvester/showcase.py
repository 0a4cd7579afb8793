"""
Award showcase platforms.

Curator sites such as Awwwards publish pages about other companies'
websites. When the renderer lands on one of these pages it resolves the
business website the page links to.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urljoin, urlparse

import yaml
from bs4 import BeautifulSoup

from harvester.constants import SOCIAL_DOMAINS

logger = logging.getLogger(__name__)

DEFAULT_PLATFORMS_PATH = Path(__file__).parent / "data" / "showcase_platforms.yaml"


@dataclass
class ShowcasePlatform:
    """One curator platform and the anchors that lead off it."""

    name: str
    domain: str
    page_pattern: str
    selectors: list[str] = field(default_factory=list)

    def matches(self, url: str) -> bool:
        return self.page_pattern in url.lower()


_platforms: Optional[Dict[str, ShowcasePlatform]] = None


def load_platforms(path: Optional[Path] = None) -> Dict[str, ShowcasePlatform]:
    """Read a platform table from YAML."""
    yaml_path = Path(path) if path else DEFAULT_PLATFORMS_PATH
    with open(yaml_path) as f:
        data = yaml.safe_load(f) or {}

    return {
        name: ShowcasePlatform(
            name=name,
            domain=entry["domain"].lower(),
            page_pattern=entry["page_pattern"].lower(),
            selectors=list(entry.get("selectors", [])),
        )
        for name, entry in data.items()
    }


def get_platforms() -> Dict[str, ShowcasePlatform]:
    global _platforms
    if _platforms is None:
        _platforms = load_platforms()
    return _platforms


def register_platform(platform: ShowcasePlatform) -> None:
    """Add or replace a platform in the active table."""
    get_platforms()[platform.name] = platform
    logger.info(f"Registered showcase platform {platform.name} ({platform.domain})")


def platform_for(url: str) -> Optional[ShowcasePlatform]:
    """The platform whose showcase page pattern the URL matches."""
    for platform in get_platforms().values():
        if platform.matches(url):
            return platform
    return None


def is_showcase_page(url: str) -> bool:
    return platform_for(url) is not None


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def _is_candidate_website(href: str) -> bool:
    parsed = urlparse(href)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False
    host = parsed.hostname.lower()
    for platform in get_platforms().values():
        if _host_matches(host, platform.domain):
            return False
    return True


def _is_social(href: str) -> bool:
    host = (urlparse(href).hostname or "").lower()
    return any(_host_matches(host, domain) for domain in SOCIAL_DOMAINS)


def resolve_actual_website(html: str, page_url: str) -> Optional[str]:
    """
    Find the business website a showcase page points to.

    Tries the platform's selectors in order, then falls back to the first
    external, non-social link that opens in a new tab.

    Args:
        html: Rendered HTML of the showcase page
        page_url: URL of the showcase page

    Returns:
        Absolute URL of the linked website, or None
    """
    platform = platform_for(page_url)
    if platform is None:
        return None

    soup = BeautifulSoup(html, "html.parser")

    for selector in platform.selectors:
        for anchor in soup.select(selector):
            href = anchor.get("href")
            if not href:
                continue
            href = urljoin(page_url, href)
            if _is_candidate_website(href):
                logger.info(f"Resolved {platform.name} page to {href} via '{selector}'")
                return href

    for anchor in soup.select('a[target="_blank"]'):
        href = anchor.get("href")
        if not href:
            continue
        href = urljoin(page_url, href)
        if _is_candidate_website(href) and not _is_social(href):
            logger.info(f"Resolved {platform.name} page to {href} via external link")
            return href

    logger.debug(f"No website link found on {page_url}")
    return None
