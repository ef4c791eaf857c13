"""
Browser session shared by every URL of one crawl.

A session owns one Chromium process and one browsing context. Pages are
handed out through :meth:`BrowserSession.new_page`, which always closes the
page when the caller is done with it, and :meth:`BrowserSession.close` tears
the whole graph down. Heavy resources (images, fonts, stylesheets, trackers)
are aborted at the context level; extraction never relies on them.
"""
from __future__ import annotations

import logging
import random
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    Response,
    Route,
    TimeoutError as PlaywrightTimeout,
    async_playwright,
)

from utils import delays

logger = logging.getLogger(__name__)

# User agents for rotation; one is picked per session
USER_AGENTS = [
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.0.0',
    'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36',
]

DEFAULT_VIEWPORT = {"width": 1920, "height": 1080}
LAUNCH_ARGS = ["--disable-gpu", "--disable-dev-shm-usage"]

BLOCKED_RESOURCE_TYPES = frozenset({"image", "media", "font", "stylesheet"})
BLOCKED_URL_MARKERS = (
    "/analytics/",
    "/ads/",
    "google-analytics.com",
    "googletagmanager.com",
    "doubleclick.net",
    "googlesyndication.com",
)


class BrowserSessionError(RuntimeError):
    """Raised when a browser session cannot be started."""


def get_random_user_agent() -> str:
    """Get a random user agent string."""
    return random.choice(USER_AGENTS)


def should_block_request(resource_type: str, url: str) -> bool:
    """Return True for requests the scraper never needs to load."""
    if resource_type in BLOCKED_RESOURCE_TYPES:
        return True
    lowered = url.lower()
    return any(marker in lowered for marker in BLOCKED_URL_MARKERS)


async def goto_with_retry(
    page: Page,
    url: str,
    *,
    timeout_ms: int,
    attempts: int = 1,
    wait_until: str = "networkidle",
) -> Optional[Response]:
    """Navigate ``page`` to ``url``, retrying timeouts and navigation errors.

    The last error is re-raised once ``attempts`` navigations have failed.
    """
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return await page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        except (PlaywrightTimeout, PlaywrightError) as exc:
            if attempt >= attempts - 1:
                raise
            logger.warning(
                "Navigation to %s failed (%s), retrying (attempt %d/%d)",
                url[:80],
                exc.__class__.__name__,
                attempt + 1,
                attempts,
            )
            await delays.backoff(attempt)
    return None


class BrowserSession:
    """One Chromium process plus one context for the duration of a crawl."""

    def __init__(
        self,
        *,
        headless: bool = True,
        user_agent: Optional[str] = None,
        viewport: Optional[dict] = None,
    ):
        self.headless = headless
        self.user_agent = user_agent or get_random_user_agent()
        self.viewport = viewport or dict(DEFAULT_VIEWPORT)
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    @property
    def is_open(self) -> bool:
        return self._context is not None

    async def open(self) -> "BrowserSession":
        if self._playwright is not None:
            raise BrowserSessionError("Browser session is already open")

        logger.info("Launching headless=%s browser", self.headless)
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=LAUNCH_ARGS,
            )
            self._context = await self._browser.new_context(
                user_agent=self.user_agent,
                viewport=self.viewport,
                java_script_enabled=True,
            )
            await self._context.route("**/*", self._handle_route)
        except PlaywrightError as exc:
            raise BrowserSessionError(f"Could not start browser session: {exc}") from exc

        logger.info("Browser session ready (user agent: %s)", self.user_agent[:60])
        return self

    async def _handle_route(self, route: Route) -> None:
        request = route.request
        if should_block_request(request.resource_type, request.url):
            await route.abort()
        else:
            await route.continue_()

    @asynccontextmanager
    async def new_page(self) -> AsyncIterator[Page]:
        """Yield a fresh page in the shared context and always close it."""
        if self._context is None:
            raise BrowserSessionError("Browser session is not open")
        page = await self._context.new_page()
        try:
            yield page
        finally:
            try:
                await page.close()
            except PlaywrightError as exc:
                logger.debug("Ignoring error while closing page: %s", exc)

    async def close(self) -> None:
        """Close context, browser and driver. Safe to call more than once."""
        context, browser, playwright = self._context, self._browser, self._playwright
        self._context = None
        self._browser = None
        self._playwright = None

        if context is not None:
            try:
                await context.close()
            except PlaywrightError as exc:
                logger.debug("Ignoring error while closing context: %s", exc)
        if browser is not None:
            try:
                await browser.close()
            except PlaywrightError as exc:
                logger.debug("Ignoring error while closing browser: %s", exc)
        if playwright is not None:
            try:
                await playwright.stop()
            except PlaywrightError as exc:
                logger.debug("Ignoring error while stopping playwright: %s", exc)
            logger.info("Browser session closed")
