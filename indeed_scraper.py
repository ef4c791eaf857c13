"""
Indeed job search scraper.

Indeed cards carry the job key (``jk``) either on the title link's
``data-jk`` attribute or in its ``/rc/clk?jk=...`` href; records always point
at the canonical ``/viewjob?jk=`` page on the same regional host as the
search. Detail pages provide the full description and the salary/job-type
header.
"""
from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import parse_qs, urljoin, urlparse

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

_JOB_KEY_RE = re.compile(r"^[0-9a-zA-Z]+$")
_COMPANY_RE = re.compile(r"/cmp/([^/?#]+)")

LINK_SELECTORS = ["h2.jobTitle a", "a.jcs-JobTitle", "a[data-jk]"]
TITLE_SELECTORS = ["h2.jobTitle span[title]", "h2.jobTitle span", "h2.jobTitle"]
COMPANY_SELECTORS = ["[data-testid='company-name']", ".companyName"]
COMPANY_LINK_SELECTORS = ["[data-testid='company-name'] a", ".companyName a"]
LOCATION_SELECTORS = ["[data-testid='text-location']", ".companyLocation"]
POSTED_SELECTORS = ["[data-testid='myJobsStateDate']", "span.date"]
SALARY_SNIPPET_SELECTORS = [".salary-snippet-container", "[data-testid='attribute_snippet_testid']"]


def extract_indeed_id(value: Optional[str]) -> Optional[str]:
    """Return the job key from an Indeed URL (``jk`` parameter) or a bare key."""
    if not value:
        return None
    value = value.strip()
    if _JOB_KEY_RE.match(value):
        return value
    params = parse_qs(urlparse(value).query)
    job_key = params.get("jk", [None])[0] or params.get("vjk", [None])[0]
    if job_key and _JOB_KEY_RE.match(job_key):
        return job_key
    return None


def extract_company_slug(company_url: Optional[str]) -> str:
    if not company_url:
        return ""
    match = _COMPANY_RE.search(company_url)
    return match.group(1) if match else ""


def split_salary_and_job_type(header_text: str) -> tuple[str, str]:
    """Split Indeed's "$80,000 - $95,000 a year - Full-time" header."""
    parts = [part.strip() for part in re.split(r"\s+-\s+(?=[A-Za-z])", header_text) if part.strip()]
    salary_parts = [part for part in parts if re.search(r"\d", part)]
    other_parts = [part for part in parts if not re.search(r"\d", part)]
    return " - ".join(salary_parts), ", ".join(other_parts)


@register_strategy
class IndeedStrategy(ExtractionStrategy):
    platform = "indeed"
    detail_fields = (
        "contract_type",
        "experience_level",
        "work_type",
        "sector",
        "applications_count",
        "salary",
    )

    def _site_root(self) -> str:
        parsed = urlparse(self.listing_url)
        if parsed.scheme and parsed.netloc:
            return f"{parsed.scheme}://{parsed.netloc}"
        return self.descriptor.base_url

    async def extract_basic(self, card: ElementHandle, category: str = "") -> Optional[BasicRecord]:
        try:
            link = await first_element(card, LINK_SELECTORS)
            if link is None:
                logger.warning("Skipping Indeed card without a job link")
                return None

            item_id = extract_indeed_id(await link.get_attribute("data-jk"))
            if item_id is None:
                item_id = extract_indeed_id(await link.get_attribute("href"))
            if item_id is None:
                logger.warning("Could not resolve an Indeed job key")
                return None

            title = await first_text(card, TITLE_SELECTORS) or sanitize_text(await link.inner_text())
            if not title:
                logger.warning("Skipping Indeed job %s without a title", item_id)
                return None

            company_name = await first_text(card, COMPANY_SELECTORS)
            company_href = await first_attribute(card, COMPANY_LINK_SELECTORS, "href")
            company_url = urljoin(self._site_root(), company_href) if company_href else None
            location = await first_text(card, LOCATION_SELECTORS)
            posted_time = await first_text(card, POSTED_SELECTORS)
            salary_snippet = await first_text(card, SALARY_SNIPPET_SELECTORS)

            return BasicRecord(
                id=item_id,
                title=title,
                url=self.descriptor.detail_url(item_id, base_url=self._site_root()),
                location=location,
                published_at=parse_published_at(None, posted_time),
                source=SourceInfo(platform=self.platform, type=self.descriptor.item_type, category=category),
                organization=Organization(name=company_name, url=company_url),
                details={"posted_time": posted_time, "salary_snippet": salary_snippet},
            )
        except Exception as exc:
            logger.warning("Error extracting Indeed card: %s", exc)
            return None

    async def read_detail(self, page: Page, record: BasicRecord) -> EnrichedRecord:
        details = self.empty_details()

        description = await first_text(page, ["#jobDescriptionText", "[data-testid='jobsearch-JobComponent-description']"])

        header_text = await first_text(page, ["#salaryInfoAndJobType"])
        if header_text:
            details["salary"], details["contract_type"] = split_salary_and_job_type(header_text)

        location_texts = [record.location]
        location_texts.extend(
            [
                await node.inner_text()
                for node in await page.query_selector_all(
                    "[data-testid='inlineHeader-companyLocation'], [data-testid='jobsearch-JobInfoHeader-companyLocation']"
                )
            ]
        )
        details["work_type"] = match_workplace_type(location_texts)

        return record.enrich(
            description=description,
            details=details,
            organization_id=extract_company_slug(record.organization.url),
        )
