"""
Page Renderer & Extractor.

Renders a URL in a real browser with Playwright and extracts everything a
page record needs. Navigation failures are fatal for the page; every
extraction step after that is best-effort and only records a warning.

    async with ResilientFetcher(config) as fetcher:
        async with PageRenderer(fetcher, config) as renderer:
            result = await renderer.render_and_extract("https://example.com")
            if result.ok:
                record = result.record
"""
import asyncio
import base64
import inspect
import logging
import random
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from harvester.browser_config import BrowserConfig
from harvester.config import HarvestConfig
from harvester.exceptions import (
    BlockedError,
    ErrorKind,
    ExtractionError,
    HarvestError,
    NetworkError,
)
from harvester.extractor import (
    DESIGN_TOKENS_SCRIPT,
    LAZY_IMAGES_SCRIPT,
    discover_images,
    extract_metadata,
    extract_text_content,
    image_dimensions,
    inline_styles,
    script_sources,
    stylesheet_urls,
)
from harvester.fetcher import ResilientFetcher, is_slow_domain
from harvester.infrastructure.identity import next_identity
from harvester.infrastructure.rate_limiter import ASSET_RATE_LIMIT
from harvester.models import (
    AntiBlockIdentity,
    DesignTokens,
    ExtractedImage,
    ExtractionResult,
    FetchOutcome,
    PageMetadata,
    PageRecord,
    TextContent,
)
from harvester.showcase import is_showcase_page, resolve_actual_website
from harvester.utils.challenge_handler import detect_challenge

logger = logging.getLogger(__name__)


STEALTH_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', { get: () => undefined });

    window.chrome = window.chrome || { runtime: {} };

    const originalQuery = window.navigator.permissions.query;
    window.navigator.permissions.query = (parameters) => (
        parameters.name === 'notifications'
            ? Promise.resolve({ state: Notification.permission })
            : originalQuery(parameters)
    );

    Object.defineProperty(navigator, 'plugins', {
        get: () => [
            { name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer', description: 'Portable Document Format' },
            { name: 'Chrome PDF Viewer', filename: 'internal-pdf-viewer', description: 'Portable Document Format' },
        ]
    });

    Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
    Object.defineProperty(navigator, 'hardwareConcurrency', { get: () => 8 });
"""


def page_path(url: str) -> str:
    """URL path used as the record key ('/' for the root)."""
    return urlparse(url).path or "/"


def preflight_error(outcome: FetchOutcome) -> HarvestError:
    """Typed error for a preflight fetch that did not succeed."""
    cause = outcome.describe_failure()
    if outcome.error == ErrorKind.BLOCKED:
        return BlockedError(cause, url=outcome.url, status_code=outcome.status_code)
    if outcome.error == ErrorKind.NETWORK:
        return NetworkError(cause, url=outcome.url)
    return ExtractionError(cause, url=outcome.url)


class PageRenderer:
    """
    Playwright-backed renderer producing PageRecords.

    Each page gets its own browser context, which is always closed again,
    so cookies and storage never leak between pages.
    """

    DESKTOP_VIEWPORTS = [
        {"width": 1920, "height": 1080},
        {"width": 1366, "height": 768},
        {"width": 1536, "height": 864},
        {"width": 1440, "height": 900},
    ]

    MOBILE_VIEWPORTS = [
        {"width": 390, "height": 844},
        {"width": 412, "height": 915},
    ]

    def __init__(
        self,
        fetcher: ResilientFetcher,
        config: Optional[HarvestConfig] = None,
        browser_config: Optional[BrowserConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the renderer.

        Args:
            fetcher: Fetcher used for the preflight request and asset downloads
            config: Harvest configuration (image budgets)
            browser_config: Browser launch and navigation settings
            sleep: Coroutine used for the settle delay
            rng: Random source for identities and viewports
        """
        self.fetcher = fetcher
        self.config = config or fetcher.config
        self.browser_config = browser_config or BrowserConfig()
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._playwright = None
        self._browser = None

    async def __aenter__(self) -> "PageRenderer":
        logger.info(
            f"Launching {self.browser_config.browser_type} browser "
            f"(headless={self.browser_config.headless})"
        )
        self._playwright = await async_playwright().start()
        launcher = getattr(self._playwright, self.browser_config.browser_type)

        launch_options = {"headless": self.browser_config.headless}
        if self.browser_config.launch_args:
            launch_options["args"] = self.browser_config.launch_args

        self._browser = await launcher.launch(**launch_options)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        logger.info("Browser closed")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def render_and_extract(self, url: str) -> ExtractionResult:
        """
        Render a page and extract its record.

        Args:
            url: Absolute http(s) URL

        Returns:
            ExtractionResult holding either a PageRecord (depth 0, order 0;
            the crawler assigns its own) or an ExtractionError
        """
        if not self._browser:
            raise RuntimeError(
                "Browser is not running. Use PageRenderer as an async context manager: "
                "async with PageRenderer(fetcher) as renderer:"
            )

        preflight = await self.fetcher.fetch(url)
        if not preflight.ok:
            return self._failure(url, preflight_error(preflight))

        identity = next_identity(self._rng)
        context = await self._create_context(identity)
        try:
            page = await context.new_page()
            if self.browser_config.stealth_mode:
                await page.add_init_script(STEALTH_SCRIPT)

            warnings: list[str] = []
            timeout = self.browser_config.slow_timeout if is_slow_domain(url) else self.browser_config.timeout
            try:
                await page.goto(url, wait_until=self.browser_config.wait_until, timeout=timeout)
                await self._sleep(self.browser_config.settle_ms / 1000.0)
                if self.browser_config.wait_for_lazy_images:
                    await self._best_effort(
                        "lazy images", lambda: page.evaluate(LAZY_IMAGES_SCRIPT), None, warnings
                    )
                html = await page.content()
            except PlaywrightError as e:
                return self._failure(url, f"Navigation failed: {e}")

            challenge = detect_challenge(html, page.url)
            if challenge:
                return self._failure(url, f"Challenge page detected ({challenge})")

            record, actual_website = await self._extract(page, url, html, warnings)
            logger.info(
                f"Extracted {url}: {len(record.text_content.paragraphs)} paragraphs, "
                f"{len(record.images)} images, {len(warnings)} warnings"
            )
            return ExtractionResult(
                url=url,
                record=record,
                actual_website_url=actual_website,
                warnings=warnings,
            )
        finally:
            await context.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _failure(self, url: str, cause) -> ExtractionResult:
        error = cause if isinstance(cause, HarvestError) else ExtractionError(cause, url=url)
        logger.warning(f"Extraction failed for {url}: {error.message}")
        return ExtractionResult(url=url, error=error)

    async def _create_context(self, identity: AntiBlockIdentity):
        mobile = identity.mobile or self.browser_config.mobile
        viewport = self._rng.choice(self.MOBILE_VIEWPORTS if mobile else self.DESKTOP_VIEWPORTS)
        return await self._browser.new_context(
            user_agent=identity.user_agent,
            viewport=viewport,
            locale="en-US",
        )

    async def _best_effort(self, step: str, action: Callable[[], Any], default: Any, warnings: list[str]) -> Any:
        """Run one extraction step; on failure record a warning and use `default`."""
        try:
            value = action()
            if inspect.isawaitable(value):
                value = await value
            return value
        except Exception as e:
            message = f"{step} failed: {e}"
            logger.warning(message)
            warnings.append(message)
            return default

    async def _extract(self, page, url: str, html: str, warnings: list[str]) -> tuple[PageRecord, Optional[str]]:
        base_url = page.url or url

        css = await self._best_effort("css", lambda: self._collect_css(html, base_url, warnings), "", warnings)
        js = await self._best_effort("scripts", lambda: self._collect_scripts(html, base_url, warnings), "", warnings)
        text = await self._best_effort("text", lambda: extract_text_content(html, base_url), TextContent(), warnings)
        metadata = await self._best_effort("metadata", lambda: extract_metadata(html), PageMetadata(), warnings)
        raw_tokens = await self._best_effort("design tokens", lambda: page.evaluate(DESIGN_TOKENS_SCRIPT), {}, warnings)
        images = await self._best_effort("images", lambda: self._collect_images(html, base_url, css), [], warnings)

        actual_website = None
        if is_showcase_page(url):
            actual_website = await self._best_effort(
                "showcase resolution", lambda: resolve_actual_website(html, base_url), None, warnings
            )

        record = PageRecord(
            url=url,
            path=page_path(url),
            depth=0,
            html_content=html,
            css_content=css,
            js_content=js,
            images=tuple(images),
            text_content=text,
            design_tokens=DesignTokens.from_dict(raw_tokens),
            metadata=metadata,
            is_home_page=page_path(url) == "/",
            order=0,
        )
        return record, actual_website

    async def _collect_css(self, html: str, base_url: str, warnings: list[str]) -> str:
        parts = list(inline_styles(html))
        for sheet_url in stylesheet_urls(html, base_url):
            outcome = await self.fetcher.get_direct(sheet_url)
            if outcome.ok:
                parts.append(f"/* {sheet_url} */\n{outcome.text}")
            else:
                message = f"Skipped stylesheet {sheet_url}: {outcome.describe_failure()}"
                logger.warning(message)
                warnings.append(message)
        return "\n\n".join(parts)

    async def _collect_scripts(self, html: str, base_url: str, warnings: list[str]) -> str:
        inline, external = script_sources(html, base_url)
        parts = list(inline)
        for script_url in external:
            outcome = await self.fetcher.fetch(script_url, rate_limit=ASSET_RATE_LIMIT)
            if outcome.ok:
                parts.append(f"// {script_url}\n{outcome.text}")
            else:
                message = f"Skipped script {script_url}: {outcome.describe_failure()}"
                logger.warning(message)
                warnings.append(message)
        return "\n\n".join(parts)

    async def _collect_images(self, html: str, base_url: str, css: str) -> list[ExtractedImage]:
        images = discover_images(html, base_url, css)
        if len(images) > self.config.max_images:
            logger.debug(f"Keeping {self.config.max_images} of {len(images)} images for {base_url}")
            images = images[: self.config.max_images]

        if not self.config.download_images:
            return images

        for image in images:
            if image.data or image.url.startswith("data:"):
                continue
            await self._download_image(image)

        failed = sum(1 for image in images if image.failed)
        logger.info(f"Extracted {len(images)} images ({len(images) - failed} successful, {failed} failed)")
        return images

    async def _download_image(self, image: ExtractedImage) -> None:
        outcome = await self.fetcher.fetch(image.url, max_retries=2, rate_limit=ASSET_RATE_LIMIT)
        if not outcome.ok:
            image.failed = True
            image.error = outcome.describe_failure()
            return

        content = outcome.content or b""
        if len(content) > self.config.max_image_bytes:
            image.failed = True
            image.error = f"Image too large: {len(content)} bytes"
            return

        mime_type = outcome.content_type.split(";")[0].strip() or "image/jpeg"
        image.data = f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"
        image.size = len(content)
        width, height = image_dimensions(content)
        if width and not image.width:
            image.width = width
        if height and not image.height:
            image.height = height
