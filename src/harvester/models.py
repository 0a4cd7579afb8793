"""Data models for web harvesting."""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from harvester.exceptions import ErrorKind, HarvestError


@dataclass
class CandidateSite:
    """A proposed target site, as returned by an external search provider."""

    url: str
    title: str
    snippet: Optional[str] = None
    rank: Optional[int] = None


@dataclass
class RankedCandidate:
    """A candidate that survived filtering, re-ranked among survivors."""

    candidate: CandidateSite
    rank: int
    original_rank: Optional[int] = None

    @property
    def url(self) -> str:
        return self.candidate.url

    def to_dict(self) -> dict:
        return {
            "url": self.candidate.url,
            "title": self.candidate.title,
            "snippet": self.candidate.snippet,
            "rank": self.rank,
            "original_rank": self.original_rank,
        }


@dataclass(frozen=True)
class AntiBlockIdentity:
    """A client signature used to make one request look like a real browser."""

    user_agent: str
    family: str  # chrome, edge, opera, firefox, safari
    platform: str  # Windows, macOS, Linux, Android, iOS
    mobile: bool = False

    @property
    def is_chromium(self) -> bool:
        return self.family in ("chrome", "edge", "opera")


@dataclass
class FetchOutcome:
    """Result of one HTTP retrieval (possibly after several attempts)."""

    url: str
    status_code: int = 0
    headers: dict[str, str] = field(default_factory=dict)
    content: Optional[bytes] = None
    blocked: bool = False
    error: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return (
            self.error is None
            and not self.blocked
            and 200 <= self.status_code < 300
        )

    @property
    def text(self) -> str:
        if not self.content:
            return ""
        return self.content.decode("utf-8", errors="replace")

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    def describe_failure(self) -> str:
        """Short reason for a non-ok outcome."""
        if self.error_message:
            return self.error_message
        if self.blocked:
            return f"Blocked: HTTP {self.status_code}"
        if self.error is not None:
            return self.error.value
        return f"HTTP {self.status_code}"


@dataclass
class ExtractedImage:
    """An image discovered on a rendered page."""

    url: str
    source: str  # img, background, svg, inline
    context: Optional[str] = None
    alt: Optional[str] = None
    type: Optional[str] = None
    data: Optional[str] = None  # data: URI
    width: Optional[int] = None
    height: Optional[int] = None
    size: Optional[int] = None
    failed: bool = False
    error: Optional[str] = None


@dataclass
class TextContent:
    """Structured text of a page."""

    title: str = ""
    headings: list[dict[str, Any]] = field(default_factory=list)
    paragraphs: list[str] = field(default_factory=list)
    lists: list[list[str]] = field(default_factory=list)
    links: list[dict[str, str]] = field(default_factory=list)


@dataclass
class DesignTokens:
    """Best-effort visual primitives inferred from computed styles."""

    colors: dict[str, str] = field(default_factory=dict)
    typography: dict[str, str] = field(default_factory=dict)
    spacing: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "DesignTokens":
        data = data or {}

        def _clean(section: Any) -> dict[str, str]:
            if not isinstance(section, dict):
                return {}
            return {k: str(v) for k, v in section.items() if v}

        return cls(
            colors=_clean(data.get("colors")),
            typography=_clean(data.get("typography")),
            spacing=_clean(data.get("spacing")),
        )


@dataclass
class PageMetadata:
    """Document-level metadata."""

    title: str = ""
    description: str = ""
    keywords: list[str] = field(default_factory=list)
    og_tags: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PageRecord:
    """One fully extracted page; the crawl unit of work and persisted output."""

    url: str
    path: str
    depth: int
    html_content: str
    css_content: str
    js_content: str
    images: tuple[ExtractedImage, ...]
    text_content: TextContent
    design_tokens: DesignTokens
    metadata: PageMetadata
    is_home_page: bool = False
    order: int = 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["images"] = [asdict(img) for img in self.images]
        return data


@dataclass
class ExtractionResult:
    """Outcome of rendering one URL: a record or an error, never both."""

    url: str
    record: Optional[PageRecord] = None
    error: Optional[HarvestError] = None
    actual_website_url: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self):
        if (self.record is None) == (self.error is None):
            raise ValueError("ExtractionResult needs exactly one of record or error")

    @property
    def ok(self) -> bool:
        return self.record is not None

    @property
    def html(self) -> str:
        return self.record.html_content if self.record else ""


@dataclass
class CrawlSummary:
    """Final result of one crawl session."""

    start_url: str
    pages_scraped: int = 0
    errors: list[str] = field(default_factory=list)
    records: list[PageRecord] = field(default_factory=list)
    policy_disallowed: bool = False

    def to_dict(self) -> dict:
        return {
            "start_url": self.start_url,
            "pages_scraped": self.pages_scraped,
            "errors": list(self.errors),
            "pages": [
                {"url": r.url, "path": r.path, "depth": r.depth, "order": r.order,
                 "is_home_page": r.is_home_page}
                for r in self.records
            ],
            "policy_disallowed": self.policy_disallowed,
        }
