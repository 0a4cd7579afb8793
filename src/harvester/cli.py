"""Command-line interface for the harvester."""

import asyncio
import sys
import json
from dataclasses import replace
from typing import Optional

from harvester.browser_config import STEALTH_CONFIG, BrowserConfig
from harvester.classifier import extract_company_name, filter_candidates
from harvester.config import HarvestConfig, settings
from harvester.fetcher import ResilientFetcher
from harvester.logging_config import setup_logging
from harvester.models import CandidateSite, CrawlSummary
from harvester.renderer import PageRenderer
from harvester.site_crawler import MultiPageCrawler
from harvester.storage import get_page_store


async def _async_crawl(
    start_url: str,
    template_id: str,
    config: HarvestConfig,
    db_path: str,
    browser_config: BrowserConfig,
) -> CrawlSummary:
    """Run one site crawl with a browser renderer and SQLite store.

    Args:
        start_url: URL to start crawling from
        template_id: Key for persisted pages
        config: Crawl configuration
        db_path: SQLite database path
        browser_config: Browser launch settings

    Returns:
        CrawlSummary for the session
    """
    store = get_page_store("sqlite", db_path=db_path)
    try:
        async with ResilientFetcher(config) as fetcher:
            async with PageRenderer(fetcher, config, browser_config) as renderer:
                crawler = MultiPageCrawler(
                    renderer,
                    store,
                    config=config,
                    on_progress=lambda current, total, url: print(f"  ✓ [{current}/{total}] {url}"),
                )
                return await crawler.crawl(start_url, template_id)
    finally:
        store.close()


def print_summary(summary: CrawlSummary):
    """Print a crawl summary in a formatted way."""
    print(f"\n{'=' * 60}")
    print(f"Crawl summary for: {summary.start_url}")
    print(f"{'=' * 60}")
    print(f"\n📄 Pages scraped: {summary.pages_scraped}")

    if summary.policy_disallowed:
        print("\n🛑 robots.txt disallows crawling this site")

    if summary.records:
        print("\nPages:")
        for record in summary.records:
            marker = " (home)" if record.is_home_page else ""
            print(f"  {record.order:>3}. {record.path}{marker}")

    if summary.errors:
        print(f"\n⚠️  Errors ({len(summary.errors)}):")
        for error in summary.errors:
            print(f"  • {error}")

    print(f"\n{'=' * 60}\n")


def classify_command(args):
    """Filter a JSON list of search candidates down to real business sites."""
    try:
        with open(args.file) as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error reading {args.file}: {e}", file=sys.stderr)
        sys.exit(1)

    candidates = [
        CandidateSite(
            url=item["url"],
            title=item.get("title", ""),
            snippet=item.get("snippet"),
            rank=item.get("rank"),
        )
        for item in raw
        if item.get("url")
    ]

    survivors = filter_candidates(candidates)
    output = []
    for ranked in survivors:
        entry = ranked.to_dict()
        entry["company_name"] = extract_company_name(ranked.candidate.title, ranked.url)
        output.append(entry)

    print(json.dumps(output, indent=2))


def crawl_command(args):
    """Crawl a site and persist its pages."""
    config = HarvestConfig.from_env()
    overrides = {"log_level": args.log_level}
    if args.max_pages is not None:
        overrides["max_pages"] = args.max_pages
    if args.max_depth is not None:
        overrides["max_depth"] = args.max_depth
    if args.no_images:
        overrides["download_images"] = False
    config = replace(config, **overrides)

    if args.stealth:
        browser_config = STEALTH_CONFIG.model_copy(update={"headless": settings.HEADLESS})
    else:
        browser_config = BrowserConfig(headless=settings.HEADLESS)

    template_id = args.template_id or args.url
    summary = asyncio.run(
        _async_crawl(args.url, template_id, config, args.db or settings.DB_PATH, browser_config)
    )

    if args.output == "json":
        print(json.dumps(summary.to_dict(), indent=2))
    else:
        print_summary(summary)


def main(argv: Optional[list] = None):
    """Main CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Harvester - Extract content and design from business websites"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=settings.LOG_LEVEL.upper(),
        help="Set logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        default=settings.LOG_FILE,
        help="Write logs to file in addition to console",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    classify_parser = subparsers.add_parser(
        "classify", help="Filter search candidates to real business websites."
    )
    classify_parser.add_argument(
        "file", help="JSON file with a list of {url, title, snippet, rank} objects"
    )
    classify_parser.set_defaults(func=classify_command)

    crawl_parser = subparsers.add_parser(
        "crawl", help="Crawl a website and store its pages."
    )
    crawl_parser.add_argument("url", help="Start URL")
    crawl_parser.add_argument(
        "--template-id",
        help="Key for stored pages (default: the start URL)",
    )
    crawl_parser.add_argument(
        "--max-pages",
        type=int,
        help="Maximum pages to store (default: 100)",
    )
    crawl_parser.add_argument(
        "--max-depth",
        type=int,
        help="Maximum link depth from the start URL (default: 5)",
    )
    crawl_parser.add_argument(
        "--db",
        help=f"SQLite database path (default: {settings.DB_PATH})",
    )
    crawl_parser.add_argument(
        "--no-images",
        action="store_true",
        help="Do not download image data",
    )
    crawl_parser.add_argument(
        "--stealth",
        action="store_true",
        help="Launch the browser with anti-detection arguments",
    )
    crawl_parser.add_argument(
        "--output",
        "-o",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    crawl_parser.set_defaults(func=crawl_command)

    args = parser.parse_args(argv)

    setup_logging(
        level=args.log_level,
        log_file=getattr(args, 'log_file', None),
    )

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
