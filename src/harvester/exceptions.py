"""Error kinds raised or reported by the harvester."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Classification of a harvesting failure."""

    NETWORK = "network"
    BLOCKED = "blocked"
    POLICY_DISALLOWED = "policy_disallowed"
    EXTRACTION = "extraction"
    PERSISTENCE = "persistence"
    INVALID_URL = "invalid_url"


class HarvestError(Exception):
    """Base class for all harvester errors."""

    kind: ErrorKind = ErrorKind.EXTRACTION

    def __init__(self, message: str, url: Optional[str] = None, kind: Optional[ErrorKind] = None):
        self.message = message
        self.url = url
        if kind is not None:
            self.kind = kind
        super().__init__(message)

    def describe(self) -> str:
        """Human-readable `url: cause` line for crawl error lists."""
        if self.url:
            return f"{self.url}: {self.message}"
        return self.message


class NetworkError(HarvestError):
    """Timeout, DNS failure or connection reset."""

    kind = ErrorKind.NETWORK


class BlockedError(HarvestError):
    """Server rejected automated access (403/429 or a challenge page)."""

    kind = ErrorKind.BLOCKED

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message, url)


class PolicyDisallowed(HarvestError):
    """robots.txt disallows crawling the whole site."""

    kind = ErrorKind.POLICY_DISALLOWED


class ExtractionError(HarvestError):
    """Rendering or parsing of a specific page failed."""

    kind = ErrorKind.EXTRACTION


class PersistenceError(HarvestError):
    """Storing a page record failed."""

    kind = ErrorKind.PERSISTENCE
