"""
Universal listing scraper.

Crawls JavaScript-rendered search pages of several job platforms with
Playwright. One browser session serves a whole list of URLs; each URL is
scrolled until exhausted, its cards are turned into records by the matching
platform strategy and, unless disabled, every record is enriched from its
detail page with a bounded number of pages open at once.

Failures are contained where they happen: a broken card is dropped, a detail
page that will not load leaves the basic record in place, and a listing that
never renders is skipped. Only failing to start the browser aborts a crawl.
"""

import argparse
import asyncio
import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout
from tqdm import tqdm

import indeed_scraper  # noqa: F401  (registers the Indeed strategy)
import linkedin_scraper  # noqa: F401  (registers the LinkedIn strategy)
from browser_session import BrowserSession, goto_with_retry
from concurrency import ConcurrencyLimiter
from config import ScraperSettings, load_settings
from extraction import get_strategy
from models import BasicRecord, EnrichedRecord
from pagination import exhaust
from pipeline import configure_logging
from platforms import detect_platform
from utils import delays
from utils.progress import ProgressTracker

logger = logging.getLogger(__name__)

INTER_URL_DELAY_MS = (5000, 10000)


@dataclass
class ScrapeOptions:
    """Per-call options: enrich records and tag them with a category."""
    detailed: bool = True
    category: str = ""


@dataclass
class CrawlStats:
    urls_processed: int = 0
    unsupported_sources: int = 0
    listing_failures: int = 0
    dropped_cards: int = 0
    detail_fallbacks: int = 0
    errors: int = 0


@dataclass
class CrawlContext:
    """Mutable state of a single ``scrape_multiple_urls`` call."""
    options: ScrapeOptions
    total_limit: int
    records: List[BasicRecord] = field(default_factory=list)
    stats: CrawlStats = field(default_factory=CrawlStats)

    @property
    def limit_reached(self) -> bool:
        return len(self.records) >= self.total_limit


@dataclass
class _UrlOutcome:
    records: List[BasicRecord] = field(default_factory=list)
    unsupported: bool = False
    listing_failed: bool = False
    dropped_cards: int = 0
    detail_fallbacks: int = 0
    error: bool = False


class UniversalScraper:
    """Runs crawls over lists of search URLs; one browser session per call."""

    def __init__(
        self,
        settings: Optional[ScraperSettings] = None,
        session_factory: Callable[..., BrowserSession] = BrowserSession,
        show_progress: bool = False,
        progress: Optional[ProgressTracker] = None,
    ):
        self.settings = settings or load_settings()
        self.session_factory = session_factory
        self.show_progress = show_progress
        self.progress = progress

    async def scrape_url(self, url: str, options: Optional[ScrapeOptions] = None) -> List[BasicRecord]:
        """Crawl a single search URL in its own browser session."""
        return await self.scrape_multiple_urls([url], options)

    async def scrape_multiple_urls(
        self,
        urls: Sequence[str],
        options: Optional[ScrapeOptions] = None,
    ) -> List[BasicRecord]:
        """Crawl ``urls`` in order and return the accumulated records.

        Stops early once ``total_items_limit`` records are collected; the
        result is truncated to exactly that many. Raises
        :class:`browser_session.BrowserSessionError` only if the browser
        cannot be started. The session is closed on every path.
        """
        context = await self.crawl(urls, options)
        return context.records

    async def crawl(self, urls: Sequence[str], options: Optional[ScrapeOptions] = None) -> CrawlContext:
        """Same as :meth:`scrape_multiple_urls` but returns records with crawl stats."""
        options = options or ScrapeOptions()
        context = CrawlContext(options=options, total_limit=self.settings.total_items_limit)
        logger.info("Starting to scrape %d URLs", len(urls))

        session = self.session_factory(headless=self.settings.headless)
        try:
            await session.open()
            for index, url in enumerate(urls):
                outcome = await self._scrape_url(session, url, context)
                self._record_outcome(context, url, outcome)

                if context.limit_reached:
                    logger.info("Reached total items limit of %d", context.total_limit)
                    del context.records[context.total_limit:]
                    break

                if index < len(urls) - 1:
                    await delays.random_delay(*INTER_URL_DELAY_MS)
        finally:
            await session.close()

        logger.info("Scraped a total of %d items", len(context.records))
        return context

    def _record_outcome(self, context: CrawlContext, url: str, outcome: _UrlOutcome) -> None:
        stats = context.stats
        stats.urls_processed += 1
        stats.unsupported_sources += int(outcome.unsupported)
        stats.listing_failures += int(outcome.listing_failed)
        stats.dropped_cards += outcome.dropped_cards
        stats.detail_fallbacks += outcome.detail_fallbacks
        stats.errors += int(outcome.error)
        context.records.extend(outcome.records)

        if self.progress is not None:
            snapshot = self.progress.update(
                url=url,
                category=context.options.category,
                records_delta=len(outcome.records),
                unsupported_source=outcome.unsupported,
                listing_failure=outcome.listing_failed,
                dropped_cards=outcome.dropped_cards,
                detail_fallbacks=outcome.detail_fallbacks,
                error=outcome.error,
            )
            logger.info(self.progress.format_line(snapshot))

    async def _scrape_url(self, session: BrowserSession, url: str, context: CrawlContext) -> _UrlOutcome:
        outcome = _UrlOutcome()
        descriptor = detect_platform(url)
        if descriptor is None:
            logger.error("Unsupported platform for URL: %s", url)
            outcome.unsupported = True
            return outcome

        logger.info("Starting to scrape %s data from URL: %s", descriptor.platform, url)
        strategy = get_strategy(descriptor.platform)(
            session,
            descriptor,
            settings=self.settings,
            listing_url=url,
        )
        options = context.options

        try:
            async with session.new_page() as page:
                try:
                    await goto_with_retry(
                        page,
                        url,
                        timeout_ms=self.settings.request_timeout_ms,
                        attempts=self.settings.retry_attempts,
                        wait_until="networkidle",
                    )
                    logger.info("Page loaded, waiting for %s items to appear...", descriptor.platform)
                    await page.wait_for_selector(
                        descriptor.listing_selector,
                        timeout=self.settings.request_timeout_ms,
                    )
                except (PlaywrightTimeout, PlaywrightError) as exc:
                    logger.error("Listing did not load for %s: %s", url, exc)
                    outcome.listing_failed = True
                    return outcome

                await exhaust(page, descriptor, max_attempts=self.settings.max_scroll_attempts)

                cards = await page.query_selector_all(descriptor.listing_selector)
                logger.info("Found %d items", len(cards))
                cards = cards[: self.settings.max_items_per_url]

                basic_records: List[BasicRecord] = []
                progress = tqdm(
                    total=len(cards),
                    desc=f"{descriptor.platform} cards",
                    unit="card",
                    leave=False,
                    disable=not self.show_progress,
                )
                try:
                    for card in cards:
                        record = await strategy.extract_basic(card, category=options.category)
                        progress.update(1)
                        if record is None:
                            outcome.dropped_cards += 1
                            continue
                        basic_records.append(record)
                finally:
                    progress.close()
                logger.info("Extracted basic data for %d items", len(basic_records))

                if options.detailed and basic_records:
                    limiter = ConcurrencyLimiter(self.settings.concurrency_limit)
                    results = await limiter.map(strategy.extract_detail, basic_records)
                    outcome.detail_fallbacks = sum(
                        1 for result in results if not isinstance(result, EnrichedRecord)
                    )
                    outcome.records = results
                else:
                    outcome.records = basic_records
        except Exception:
            logger.exception("Error scraping from URL (%s): %s", descriptor.platform, url)
            outcome.error = True
            outcome.records = []
            return outcome

        logger.info("Successfully scraped %d items from URL", len(outcome.records))
        return outcome


def save_to_csv(records: Sequence[BasicRecord], filename: str) -> None:
    """Write flattened records to a CSV file."""
    if not records:
        logger.info("No records to save.")
        return

    rows = [record.to_row() for record in records]
    detail_keys = sorted({key for row in rows for key in row["details"]})
    fieldnames = [name for name in rows[0] if name != "details"] + [f"details.{key}" for key in detail_keys]

    Path(filename).parent.mkdir(parents=True, exist_ok=True)
    with open(filename, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            details = row.pop("details")
            for key in detail_keys:
                row[f"details.{key}"] = details.get(key, "")
            writer.writerow(row)

    logger.info("Saved %d records to %s", len(records), filename)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Scrape job listings from supported platforms")
    parser.add_argument("urls", nargs="+", help="Search/listing URLs to crawl, in order")
    parser.add_argument("--category", type=str, default="", help="Category tag for every record")
    parser.add_argument("--fast", action="store_true", help="Skip detail pages (basic records only)")
    parser.add_argument("--max-items-per-url", type=int, help="Override MAX_ITEMS_PER_URL")
    parser.add_argument("--total-items-limit", type=int, help="Override TOTAL_ITEMS_LIMIT")
    parser.add_argument("--concurrency", type=int, help="Override CONCURRENCY_LIMIT")
    parser.add_argument("--output", "-o", type=str, default="records.csv", help="CSV output path")
    parser.add_argument("--show-progress", action="store_true", help="Show per-URL progress bars")
    return parser.parse_args(argv)


def apply_overrides(settings: ScraperSettings, args: argparse.Namespace) -> ScraperSettings:
    if getattr(args, "max_items_per_url", None) is not None:
        settings.max_items_per_url = args.max_items_per_url
    if getattr(args, "total_items_limit", None) is not None:
        settings.total_items_limit = args.total_items_limit
    if getattr(args, "concurrency", None) is not None:
        settings.concurrency_limit = args.concurrency
    return settings


async def main(argv: Optional[Sequence[str]] = None) -> None:
    configure_logging()
    args = parse_args(argv)
    settings = apply_overrides(load_settings(), args)
    scraper = UniversalScraper(settings, show_progress=args.show_progress)
    records = await scraper.scrape_multiple_urls(
        args.urls,
        ScrapeOptions(detailed=not args.fast, category=args.category),
    )
    save_to_csv(records, args.output)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
