#!/usr/bin/env python3
"""
Scraper runner for the BISAC subject headings list.

Discovers the category pages from the index page (or takes them from the
configuration / command line), scrapes them sequentially with one headless
browser, and writes the resulting snapshot as JSON.
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

from bisac_tools.config_interface import DEFAULT_CONFIG_PATH, Config, ScraperSettings, get_config_version, load_config
from bisac_tools.logger import get_logger
from bisac_tools.scraping.batch_runner import BatchResult, BatchRunner
from bisac_tools.scraping.page_driver import CrawlerPageDriver
from bisac_tools.scraping.progress import log_progress
from bisac_tools.scraping.url_discovery import extract_category_urls, fetch_index_html
from bisac_tools.snapshot_store import SnapshotStore

logger = get_logger(__name__)


async def discover_urls(config: Config, explicit_urls: Sequence[str] = ()) -> list[str]:
    """Category URLs from the command line, the config, or the index page (in that order)."""
    if explicit_urls:
        return list(explicit_urls)
    if config.scraper.category_urls:
        return list(config.scraper.category_urls)

    index_url = config.scraper.index_url
    logger.info(f"Discovering category pages from {index_url}")
    html = await fetch_index_html(index_url, timeout=config.scraper.fetch.timeout)
    return extract_category_urls(
        html,
        base_url=index_url,
        link_selector=config.scraper.selectors.category_links,
        host=config.scraper.link_host,
    )


async def scrape_categories(config: Config, urls: Sequence[str]) -> BatchResult:
    """Scrape ``urls`` with one browser; Ctrl-C stops the batch before the next URL."""
    browser = config.scraper.browser
    selectors = config.scraper.selectors
    cancel_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers not supported here; batch cannot be interrupted cleanly")

    try:
        async with CrawlerPageDriver(
            headless=browser.headless,
            user_agent=browser.user_agent,
            viewport_width=browser.viewport_width,
            viewport_height=browser.viewport_height,
            extra_args=browser.extra_args,
            heading_selector=selectors.heading,
            content_selector=selectors.content,
            block_selector=selectors.block,
        ) as driver:
            runner = BatchRunner(
                driver,
                options=config.scraper.to_batch_options(),
                on_event=log_progress,
                excluded_phrases=config.segmentation.excluded_phrases,
            )
            return await runner.run(urls, cancel_event=cancel_event)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


def run(config: Config, urls: Sequence[str], output: Optional[Path] = None) -> int:
    """Scrape and persist; returns the process exit code."""
    result = asyncio.run(_scrape(config, urls))

    for failure in result.failures:
        logger.warning(f"  {failure.url} [{failure.stage}] {failure.reason}")

    if result.snapshot.category_count == 0:
        logger.error("No categories were collected; nothing will be saved.")
        return 1

    store = SnapshotStore(config.storage.data_dir, config.storage.snapshot_filename)
    path = store.save(result.snapshot, path=output)
    logger.info(
        f"Scraped {result.snapshot.category_count} categories "
        f"({result.snapshot.entry_count} entries, {len(result.failures)} failures) -> {path}"
    )
    return 0


async def _scrape(config: Config, urls: Sequence[str]) -> BatchResult:
    category_urls = await discover_urls(config, urls)
    logger.info(f"Scraping {len(category_urls)} category page(s)")
    return await scrape_categories(config, category_urls)


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Scrape the BISAC subject headings list into a JSON snapshot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scrape every category found on the index page
  bisac-scrape

  # Try the scraper on the first three categories only
  bisac-scrape --limit 3 --output data/bisac-test.json

  # Scrape one category page with a visible browser
  bisac-scrape --url https://www.bisg.org/fiction --no-headless
        """,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to config.yaml (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--url",
        nargs="+",
        default=[],
        metavar="URL",
        help="Scrape these category pages instead of discovering them",
    )
    parser.add_argument("--limit", type=int, default=None, help="Scrape at most this many categories")
    parser.add_argument("--output", "-o", type=Path, default=None, help="Snapshot file to write")
    parser.add_argument("--no-headless", action="store_true", help="Show the browser window")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Set main entry point for the scraper."""
    args = parse_arguments(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = load_config(args.config)
        if args.limit is not None or args.no_headless:
            scraper_data = config.scraper.model_dump()
            if args.limit is not None:
                scraper_data["max_categories"] = args.limit
            if args.no_headless:
                scraper_data["browser"]["headless"] = False
            config = config.model_copy(update={"scraper": ScraperSettings.model_validate(scraper_data)})
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logger.info(f"Loaded configuration {args.config} (version {get_config_version(config)})")

    try:
        return run(config, args.url, output=args.output)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 2


if __name__ == "__main__":
    sys.exit(main())
