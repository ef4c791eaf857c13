"""
Extraction contract shared by every platform scraper.

A strategy turns a rendered listing card into a :class:`BasicRecord` and a
basic record into an :class:`EnrichedRecord` by visiting its detail page.
Concrete strategies (``linkedin_scraper``, ``indeed_scraper``) register
themselves by platform slug so the orchestrator can pick one per URL.

Card extraction fails softly: a card missing a required field is logged and
skipped. Detail extraction never raises either; if the page cannot be read
the untouched basic record comes back instead.
"""
from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Type

from playwright.async_api import ElementHandle, Page

from browser_session import goto_with_retry
from config import ScraperSettings
from models import BasicRecord, EnrichedRecord
from platforms import PlatformDescriptor
from utils import delays

if TYPE_CHECKING:
    from browser_session import BrowserSession

logger = logging.getLogger(__name__)

DETAIL_SETTLE_MS = (1000, 3000)
WORKPLACE_TYPES = ("Remote", "On-site", "Hybrid")

_RELATIVE_TIME_RE = re.compile(r"(\d+)\+?\s+(minute|hour|day|week|month|year)s?\s+ago", re.IGNORECASE)
_UNIT_DELTAS = {
    "minute": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}


def sanitize_text(value: Optional[str]) -> str:
    if not value:
        return ""
    return " ".join(value.split()).strip()


async def first_element(root, selectors: Iterable[str]) -> Optional[ElementHandle]:
    for selector in selectors:
        node = await root.query_selector(selector)
        if node:
            return node
    return None


async def first_text(root, selectors: Iterable[str]) -> str:
    """Return the first non-empty inner text among ``selectors``."""
    for selector in selectors:
        node = await root.query_selector(selector)
        if node:
            text = sanitize_text(await node.inner_text())
            if text:
                return text
    return ""


async def first_attribute(root, selectors: Iterable[str], attribute: str) -> Optional[str]:
    for selector in selectors:
        node = await root.query_selector(selector)
        if node:
            value = await node.get_attribute(attribute)
            if value:
                return value.strip()
    return None


def estimate_date_from_relative_time(
    relative_time: Optional[str],
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """Turn "3 days ago" style text into an absolute UTC timestamp."""
    if not relative_time:
        return None
    now = now or datetime.now(timezone.utc)
    lowered = relative_time.strip().lower()
    if "just posted" in lowered or "today" in lowered or "just now" in lowered:
        return now
    if "yesterday" in lowered:
        return now - timedelta(days=1)

    match = _RELATIVE_TIME_RE.search(lowered)
    if not match:
        return None
    amount = int(match.group(1))
    return now - _UNIT_DELTAS[match.group(2)] * amount


def parse_published_at(
    datetime_attr: Optional[str],
    relative_text: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """Prefer a machine-readable ``datetime`` attribute, else relative text."""
    if datetime_attr:
        try:
            parsed = datetime.fromisoformat(datetime_attr.strip())
        except ValueError:
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
    return estimate_date_from_relative_time(relative_text, now=now)


def match_workplace_type(texts: Iterable[str]) -> str:
    """Return the first text mentioning a workplace type, else ""."""
    for text in texts:
        if any(marker in text for marker in WORKPLACE_TYPES):
            return text.strip()
    return ""


class ExtractionStrategy(ABC):
    """Per-platform extraction, held for the processing of one listing URL."""

    platform: str = "base"
    detail_fields: tuple[str, ...] = ()

    def __init__(
        self,
        session: "BrowserSession",
        descriptor: PlatformDescriptor,
        settings: Optional[ScraperSettings] = None,
        listing_url: Optional[str] = None,
    ):
        self.session = session
        self.descriptor = descriptor
        self.settings = settings or ScraperSettings()
        self.listing_url = listing_url or descriptor.base_url

    @abstractmethod
    async def extract_basic(self, card: ElementHandle, category: str = "") -> Optional[BasicRecord]:
        """Build a record from a listing card, or None if it is unusable."""

    @abstractmethod
    async def read_detail(self, page: Page, record: BasicRecord) -> EnrichedRecord:
        """Read enrichment fields from an already loaded detail page."""

    def empty_details(self) -> Dict[str, str]:
        return {name: "" for name in self.detail_fields}

    async def extract_detail(self, record: BasicRecord) -> BasicRecord:
        """Visit the record's detail page; fall back to ``record`` on failure."""
        logger.info("Extracting detail for %s item %s - %s", self.platform, record.id, record.title[:60])
        try:
            async with self.session.new_page() as page:
                await goto_with_retry(
                    page,
                    record.url,
                    timeout_ms=self.settings.request_timeout_ms,
                    attempts=self.settings.retry_attempts,
                    wait_until="networkidle",
                )
                await delays.random_delay(*DETAIL_SETTLE_MS)
                return await self.read_detail(page, record)
        except Exception as exc:
            logger.warning("Detail extraction failed for item %s: %s", record.id, exc)
            return record


_STRATEGIES: Dict[str, Type[ExtractionStrategy]] = {}


def register_strategy(strategy_cls: Type[ExtractionStrategy]) -> Type[ExtractionStrategy]:
    """Register a strategy class under its ``platform`` slug (usable as a decorator)."""
    _STRATEGIES[strategy_cls.platform] = strategy_cls
    return strategy_cls


def get_strategy(platform: str) -> Type[ExtractionStrategy]:
    """Return the strategy class for the requested platform."""
    try:
        return _STRATEGIES[platform]
    except KeyError as exc:
        raise ValueError(f"No extraction strategy for platform: {platform}") from exc
