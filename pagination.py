"""Scroll and "load more" handling for infinite listing pages."""
from __future__ import annotations

import logging

from playwright.async_api import Error as PlaywrightError, Page

from platforms import PlatformDescriptor
from utils import delays

logger = logging.getLogger(__name__)

MAX_SCROLL_ATTEMPTS = 20
SCROLL_WAIT_MS = (1000, 2000)


async def _content_height(page: Page) -> int:
    return await page.evaluate("() => document.body.scrollHeight")


async def _advance(page: Page, descriptor: PlatformDescriptor) -> bool:
    """Click the platform's "show more" control if it is visible."""
    if not descriptor.load_more_selector:
        return False
    control = page.locator(descriptor.load_more_selector)
    if await control.count() == 0:
        return False
    control = control.first
    if not await control.is_visible():
        return False
    logger.info("Clicking %s pagination control", descriptor.platform)
    await control.click()
    return True


async def exhaust(
    page: Page,
    descriptor: PlatformDescriptor,
    *,
    max_attempts: int = MAX_SCROLL_ATTEMPTS,
) -> None:
    """Keep scrolling until the listing stops growing.

    Each iteration scrolls to the bottom and waits for rendering. When the
    height is unchanged the platform control is tried; if there is none the
    listing is exhausted. Every iteration counts toward ``max_attempts`` so
    pages that never settle still terminate.
    """
    attempts = 0
    try:
        previous_height = await _content_height(page)
        while attempts < max_attempts:
            attempts += 1
            await page.evaluate("() => window.scrollTo(0, document.body.scrollHeight)")
            await delays.random_delay(*SCROLL_WAIT_MS)

            current_height = await _content_height(page)
            if current_height != previous_height:
                previous_height = current_height
                continue

            if not await _advance(page, descriptor):
                logger.info("Reached the end of the listings")
                break
            await delays.random_delay(*descriptor.pagination_wait_ms)
    except PlaywrightError as exc:
        logger.warning("Stopped paginating %s after an error: %s", descriptor.platform, exc)

    logger.info("Finished scrolling after %d attempts", attempts)
