"""
LinkedIn job search scraper.

Reads the public (guest) job search results: each ``.job-search-card`` gives
the posting link, title, company and location, and the posting page adds the
description, the job-criteria list (seniority, employment type, function,
industry), workplace type, applicant count and salary when shown.
"""
from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import urljoin

from playwright.async_api import ElementHandle, Page

from extraction import (
    ExtractionStrategy,
    first_attribute,
    first_element,
    first_text,
    match_workplace_type,
    parse_published_at,
    register_strategy,
    sanitize_text,
)
from models import BasicRecord, EnrichedRecord, Organization, SourceInfo

logger = logging.getLogger(__name__)

URN_PREFIX = "urn:li:jobPosting:"
_JOB_VIEW_RE = re.compile(r"/jobs/view/(?:[^/?#]*-)?(\d+)")
_COMPANY_RE = re.compile(r"/company/([^/?#]+)")

LINK_SELECTORS = [".job-search-card__link", "a.base-card__full-link", "a[href*='/jobs/view/']"]
TITLE_SELECTORS = [".base-search-card__title", ".job-search-card__title"]
COMPANY_SELECTORS = [".job-search-card__company-name", ".base-search-card__subtitle"]
COMPANY_LINK_SELECTORS = [".job-search-card__company-name a", ".base-search-card__subtitle a"]
LOCATION_SELECTORS = [".job-search-card__location"]

# Criteria label keywords mapped to detail fields, checked in order
CRITERIA_FIELDS = (
    (("Seniority level",), "experience_level"),
    (("Employment type",), "contract_type"),
    (("Job function",), "job_function"),
    (("Industry", "Industries"), "sector"),
)


def extract_linkedin_id(url_or_urn: Optional[str]) -> Optional[str]:
    """Return the posting id from an entity URN or a ``/jobs/view/`` URL.

    >>> extract_linkedin_id("urn:li:jobPosting:3544610012")
    '3544610012'
    >>> extract_linkedin_id("https://www.linkedin.com/jobs/view/3544610012?refId=a")
    '3544610012'
    """
    if not url_or_urn:
        return None
    if URN_PREFIX in url_or_urn:
        return url_or_urn.rsplit(":", 1)[-1].strip() or None
    if "/jobs/view/" in url_or_urn:
        match = _JOB_VIEW_RE.search(url_or_urn)
        return match.group(1) if match else None
    return None


def extract_company_id(company_url: Optional[str]) -> str:
    if not company_url:
        return ""
    match = _COMPANY_RE.search(company_url)
    return match.group(1) if match else ""


@register_strategy
class LinkedInStrategy(ExtractionStrategy):
    platform = "linkedin"
    detail_fields = (
        "contract_type",
        "experience_level",
        "work_type",
        "sector",
        "job_function",
        "applications_count",
        "salary",
    )

    async def extract_basic(self, card: ElementHandle, category: str = "") -> Optional[BasicRecord]:
        try:
            link = await first_element(card, LINK_SELECTORS)
            if link is None:
                logger.warning("Skipping LinkedIn card without a posting link")
                return None
            href = await link.get_attribute("href")
            if not href:
                logger.warning("Skipping LinkedIn card with an empty posting link")
                return None
            item_url = urljoin(self.listing_url, href.strip())

            item_id = extract_linkedin_id(item_url)
            if item_id is None:
                item_id = extract_linkedin_id(await card.get_attribute("data-entity-urn"))
            if item_id is None:
                logger.warning("Could not resolve a LinkedIn job id from %s", item_url[:80])
                return None

            title = await first_text(card, TITLE_SELECTORS) or sanitize_text(await link.inner_text())
            if not title:
                logger.warning("Skipping LinkedIn job %s without a title", item_id)
                return None

            company_name = await first_text(card, COMPANY_SELECTORS)
            company_url = await first_attribute(card, COMPANY_LINK_SELECTORS, "href")
            location = await first_text(card, LOCATION_SELECTORS)

            posted_time = ""
            published_at = None
            time_node = await card.query_selector("time")
            if time_node:
                posted_time = sanitize_text(await time_node.inner_text())
                published_at = parse_published_at(await time_node.get_attribute("datetime"), posted_time)

            return BasicRecord(
                id=item_id,
                title=title,
                url=item_url,
                location=location,
                published_at=published_at,
                source=SourceInfo(platform=self.platform, type=self.descriptor.item_type, category=category),
                organization=Organization(name=company_name, url=company_url),
                details={"posted_time": posted_time},
            )
        except Exception as exc:
            logger.warning("Error extracting LinkedIn card: %s", exc)
            return None

    async def read_detail(self, page: Page, record: BasicRecord) -> EnrichedRecord:
        details = self.empty_details()

        description = await first_text(page, [".description__text", ".show-more-less-html__markup"])

        for item in await page.query_selector_all(".job-criteria-item, .description__job-criteria-item"):
            header = await item.query_selector(".job-criteria-subheader, .description__job-criteria-subheader")
            value = await item.query_selector(".job-criteria-text, .description__job-criteria-text")
            if not header or not value:
                continue
            header_text = sanitize_text(await header.inner_text())
            value_text = sanitize_text(await value.inner_text())
            for keywords, field_name in CRITERIA_FIELDS:
                if any(keyword in header_text for keyword in keywords):
                    details[field_name] = value_text
                    break

        workplace_texts = [
            await node.inner_text() for node in await page.query_selector_all(".job-detail-location-metadata")
        ]
        details["work_type"] = match_workplace_type(workplace_texts)

        details["applications_count"] = await first_text(
            page, [".num-applicants__caption", ".num-applicants__figure"]
        )
        details["salary"] = await first_text(
            page,
            [
                ".salary.compensation__salary",
                '.job-details-jobs-unified-top-card__job-insight span:has-text("$")',
            ],
        )

        return record.enrich(
            description=description,
            details=details,
            organization_id=extract_company_id(record.organization.url),
        )
