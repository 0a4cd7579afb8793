"""Multi-page crawler: breadth-first harvesting of one site at a time."""

import asyncio
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Deque, Iterable, List, Optional, Set, Tuple
from urllib.parse import urlparse
import logging

from harvester.config import HarvestConfig
from harvester.constants import FRONTIER_GROWTH_FACTOR, SKIP_URL_PATTERNS
from harvester.exceptions import PersistenceError, PolicyDisallowed
from harvester.extractor import extract_links
from harvester.fetcher import ResilientFetcher, origin_of
from harvester.models import CrawlSummary, PageRecord
from harvester.renderer import PageRenderer, page_path
from harvester.storage import AbstractPageStore

logger = logging.getLogger(__name__)


def normalize_url(url: str) -> str:
    """Normalize URL by removing the fragment and a trailing slash.

    Args:
        url: URL to normalize

    Returns:
        Normalized URL (`https://a.example/` becomes `https://a.example`)
    """
    parsed = urlparse(url.split("#", 1)[0])
    path = parsed.path
    if path.endswith("/"):
        path = path[:-1]
    normalized = f"{parsed.scheme}://{parsed.netloc.lower()}{path}"
    if parsed.query:
        normalized += f"?{parsed.query}"
    return normalized


def should_skip_url(url: str) -> bool:
    """True for documents, media, assets and pseudo-links."""
    return any(pattern.search(url) for pattern in SKIP_URL_PATTERNS)


@dataclass
class CrawlSession:
    """Mutable state of one site crawl."""

    seed_url: str
    origin: str
    template_id: str
    visited: Set[str] = field(default_factory=set)
    queued: Set[str] = field(default_factory=set)
    frontier: Deque[Tuple[str, int]] = field(default_factory=deque)
    pages_scraped: int = 0
    errors: List[str] = field(default_factory=list)
    records: List[PageRecord] = field(default_factory=list)
    next_order: int = 1
    policy_disallowed: bool = False

    def summary(self) -> CrawlSummary:
        return CrawlSummary(
            start_url=self.seed_url,
            pages_scraped=self.pages_scraped,
            errors=list(self.errors),
            records=list(self.records),
            policy_disallowed=self.policy_disallowed,
        )


class MultiPageCrawler:
    """Crawls one site breadth-first, persisting a record per page.

    Pages are visited strictly one at a time; politeness towards a single
    origin matters more than throughput. Every per-page failure becomes an
    entry in the summary's error list and the crawl carries on.

        crawler = MultiPageCrawler(renderer, store, config=config)
        summary = await crawler.crawl("https://acme.example/", template_id="acme")
    """

    def __init__(
        self,
        renderer: PageRenderer,
        store: AbstractPageStore,
        fetcher: Optional[ResilientFetcher] = None,
        config: Optional[HarvestConfig] = None,
        on_progress: Optional[Callable[[int, int, str], None]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the crawler.

        Args:
            renderer: Produces ExtractionResults for single URLs
            store: Page persistence backend
            fetcher: Fetcher used for the robots.txt check (defaults to the
                renderer's fetcher)
            config: Crawl budgets
            on_progress: Optional callback (pages_scraped, max_pages, url)
            sleep: Coroutine used for the delay between page visits
        """
        self.renderer = renderer
        self.store = store
        self.fetcher = fetcher or renderer.fetcher
        self.config = config or HarvestConfig()
        self.on_progress = on_progress
        self._sleep = sleep
        self._stop_requested = False
        self.session: Optional[CrawlSession] = None

    def request_stop(self) -> None:
        """Stop after the page currently being processed."""
        self._stop_requested = True

    async def crawl(self, start_url: str, template_id: str = "default") -> CrawlSummary:
        """Crawl a site starting from a URL.

        Never raises for crawl failures; they are reported in the summary.

        Args:
            start_url: Seed URL (depth 0)
            template_id: Key under which pages are persisted

        Returns:
            CrawlSummary with the persisted records and error list
        """
        seed = normalize_url(start_url)
        origin = origin_of(seed)
        if origin is None:
            logger.error(f"Cannot crawl malformed URL: {start_url}")
            return CrawlSummary(start_url=start_url, errors=[f"{start_url}: Invalid URL"])

        session = CrawlSession(seed_url=seed, origin=origin, template_id=template_id)
        self.session = session
        self._stop_requested = False

        try:
            await self._run(session)
        except Exception as e:
            logger.exception(f"Crawl of {seed} aborted: {e}")
            session.errors.append(f"{seed}: Crawl aborted: {e}")

        logger.info(
            f"Crawl of {seed} finished: {session.pages_scraped} pages, "
            f"{len(session.errors)} errors"
        )
        return session.summary()

    async def _run(self, session: CrawlSession) -> None:
        max_pages = self.config.max_pages
        max_depth = self.config.max_depth

        try:
            self.store.clear(session.template_id)
        except PersistenceError as e:
            logger.warning(f"Could not clear pages for {session.template_id}: {e}")

        if not await self.fetcher.check_policy(session.seed_url):
            session.policy_disallowed = True
            error = PolicyDisallowed("Disallowed by robots.txt", url=session.seed_url)
            session.errors.append(error.describe())
            return

        logger.info(f"Starting crawl from: {session.seed_url}")
        logger.info(f"Max pages: {max_pages}, max depth: {max_depth}")

        session.frontier.append((session.seed_url, 0))
        session.queued.add(session.seed_url)
        first_visit = True

        while (
            session.frontier
            and session.pages_scraped < max_pages
            and len(session.visited) < max_pages
            and not self._stop_requested
        ):
            url, depth = session.frontier.popleft()
            url = normalize_url(url)

            if url in session.visited:
                continue
            if depth > max_depth:
                continue
            if origin_of(url) != session.origin:
                continue
            if should_skip_url(url):
                continue

            session.visited.add(url)

            if not first_visit:
                await self._sleep(self.config.page_delay_ms / 1000.0)
            first_visit = False

            logger.info(f"[{len(session.visited)}/{max_pages}] L{depth} {url}")
            await self._visit(session, url, depth)

    async def _visit(self, session: CrawlSession, url: str, depth: int) -> None:
        timeout_ms = self.config.page_timeout_ms
        try:
            result = await asyncio.wait_for(
                self.renderer.render_and_extract(url),
                timeout=timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timeout crawling {url}")
            session.errors.append(f"{url}: Timed out after {timeout_ms}ms")
            return
        except Exception as e:
            logger.error(f"Error crawling {url}: {e}")
            session.errors.append(f"{url}: {e}")
            return

        if not result.ok:
            session.errors.append(result.error.describe())
            return

        path = page_path(url)
        is_home = path == "/"
        record = replace(
            result.record,
            url=url,
            path=path,
            depth=depth,
            is_home_page=is_home,
            order=0 if is_home else session.next_order,
        )

        try:
            self.store.save(session.template_id, record)
        except PersistenceError as e:
            logger.error(f"Failed to persist {url}: {e}")
            session.errors.append(f"{url}: {e.message}")
        else:
            if not is_home:
                session.next_order += 1
            session.pages_scraped += 1
            session.records.append(record)
            if self.on_progress:
                self.on_progress(session.pages_scraped, self.config.max_pages, url)

        self._enqueue_links(session, record.html_content, url, depth)

    def _enqueue_links(self, session: CrawlSession, html: str, url: str, depth: int) -> None:
        if depth + 1 > self.config.max_depth:
            return

        frontier_cap = FRONTIER_GROWTH_FACTOR * self.config.max_pages
        added = 0
        for link in extract_links(html, url):
            if added >= self.config.max_links_per_page or len(session.frontier) >= frontier_cap:
                break
            normalized = normalize_url(link)
            if origin_of(normalized) != session.origin:
                continue
            if should_skip_url(normalized):
                continue
            if normalized in session.visited or normalized in session.queued:
                continue
            session.frontier.append((normalized, depth + 1))
            session.queued.add(normalized)
            added += 1

        if added:
            logger.debug(f"Queued {added} new links for L{depth + 1}")


async def crawl_sites(
    targets: Iterable[Tuple[str, str]],
    renderer: PageRenderer,
    store: AbstractPageStore,
    fetcher: Optional[ResilientFetcher] = None,
    config: Optional[HarvestConfig] = None,
) -> List[CrawlSummary]:
    """Crawl several sites concurrently.

    Sessions share the renderer, and with it the fetcher's rate limiter, so
    sessions against the same origin still respect one politeness budget.

    Args:
        targets: (start_url, template_id) pairs

    Returns:
        One CrawlSummary per target, in input order
    """
    crawlers = [
        (MultiPageCrawler(renderer, store, fetcher=fetcher, config=config), start_url, template_id)
        for start_url, template_id in targets
    ]
    return list(await asyncio.gather(
        *(crawler.crawl(start_url, template_id) for crawler, start_url, template_id in crawlers)
    ))
