"""Resilient web harvesting for business websites."""

__version__ = "0.1.0"

from harvester.classifier import (
    BusinessSiteClassifier,
    ClassifierRules,
    extract_company_name,
    filter_candidates,
    is_real_business_site,
)
from harvester.fetcher import ResilientFetcher
from harvester.renderer import PageRenderer
from harvester.site_crawler import MultiPageCrawler, crawl_sites
from harvester.storage import (
    AbstractPageStore,
    MemoryPageStore,
    SqlitePageStore,
    get_page_store,
)
from harvester.models import (
    AntiBlockIdentity,
    CandidateSite,
    CrawlSummary,
    DesignTokens,
    ExtractedImage,
    ExtractionResult,
    FetchOutcome,
    PageMetadata,
    PageRecord,
    RankedCandidate,
    TextContent,
)
from harvester.exceptions import (
    ErrorKind,
    ExtractionError,
    HarvestError,
    PersistenceError,
)
from harvester.config import HarvestConfig, settings
from harvester.browser_config import BrowserConfig

# Infrastructure
from harvester.infrastructure import (
    OriginRateLimiter,
    RateLimitConfig,
    Verdict,
    headers_for,
    next_identity,
    retry_with_backoff,
)

# Utils
from harvester.utils import (
    detect_challenge,
    is_challenge_page,
)

__all__ = [
    # Core
    "BusinessSiteClassifier",
    "ClassifierRules",
    "ResilientFetcher",
    "PageRenderer",
    "MultiPageCrawler",
    "crawl_sites",
    "extract_company_name",
    "filter_candidates",
    "is_real_business_site",
    # Storage
    "AbstractPageStore",
    "MemoryPageStore",
    "SqlitePageStore",
    "get_page_store",
    # Models
    "AntiBlockIdentity",
    "CandidateSite",
    "CrawlSummary",
    "DesignTokens",
    "ExtractedImage",
    "ExtractionResult",
    "FetchOutcome",
    "PageMetadata",
    "PageRecord",
    "RankedCandidate",
    "TextContent",
    # Errors
    "ErrorKind",
    "ExtractionError",
    "HarvestError",
    "PersistenceError",
    # Config
    "HarvestConfig",
    "BrowserConfig",
    "settings",
    # Infrastructure
    "OriginRateLimiter",
    "RateLimitConfig",
    "Verdict",
    "headers_for",
    "next_identity",
    "retry_with_backoff",
    # Utils
    "detect_challenge",
    "is_challenge_page",
]
