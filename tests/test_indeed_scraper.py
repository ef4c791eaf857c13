from unittest import IsolatedAsyncioTestCase
from unittest.mock import AsyncMock, patch

from config import ScraperSettings
from indeed_scraper import (
    IndeedStrategy,
    extract_company_slug,
    extract_indeed_id,
    split_salary_and_job_type,
)
from models import EnrichedRecord
from platforms import INDEED
from tests.fake_browser import FakeElement, FakePage, FakeSession

LISTING_URL = "https://ca.indeed.com/jobs?q=data+analyst&l=Montreal"


def test_extract_indeed_id_variants():
    assert extract_indeed_id("a1b2c3d4e5f6") == "a1b2c3d4e5f6"
    assert extract_indeed_id("/rc/clk?jk=0123abcd&fccid=x") == "0123abcd"
    assert extract_indeed_id("https://www.indeed.com/viewjob?jk=deadbeef") == "deadbeef"
    assert extract_indeed_id("https://www.indeed.com/jobs?q=x&vjk=cafe01") == "cafe01"
    assert extract_indeed_id("https://www.indeed.com/cmp/acme") is None
    assert extract_indeed_id(None) is None


def test_extract_company_slug():
    assert extract_company_slug("https://ca.indeed.com/cmp/Acme-Corp?from=x") == "Acme-Corp"
    assert extract_company_slug("") == ""


def test_split_salary_and_job_type():
    assert split_salary_and_job_type("$80,000 - $95,000 a year - Full-time") == (
        "$80,000 - $95,000 a year",
        "Full-time",
    )
    assert split_salary_and_job_type("Permanent - Full-time") == ("", "Permanent, Full-time")
    assert split_salary_and_job_type("$25 an hour") == ("$25 an hour", "")


def _card(job_key="abc123", title="Data Analyst"):
    return FakeElement(
        children={
            "h2.jobTitle a": [FakeElement(text=title, attrs={"data-jk": job_key, "href": f"/rc/clk?jk={job_key}"})],
            "h2.jobTitle span[title]": [FakeElement(text=title)] if title else [],
            "[data-testid='company-name']": [FakeElement(text="Acme")],
            "[data-testid='company-name'] a": [FakeElement(text="Acme", attrs={"href": "/cmp/Acme"})],
            "[data-testid='text-location']": [FakeElement(text="Montréal, QC")],
            "[data-testid='myJobsStateDate']": [FakeElement(text="Posted 3 days ago")],
            ".salary-snippet-container": [FakeElement(text="$25 an hour")],
        }
    )


def _strategy(session=None) -> IndeedStrategy:
    settings = ScraperSettings(retry_attempts=1, request_timeout_ms=1000)
    return IndeedStrategy(session, INDEED, settings=settings, listing_url=LISTING_URL)


class TestIndeedStrategy(IsolatedAsyncioTestCase):
    async def test_extract_basic_uses_regional_host(self):
        record = await _strategy().extract_basic(_card(), category="analytics")

        self.assertEqual(record.id, "abc123")
        self.assertEqual(record.url, "https://ca.indeed.com/viewjob?jk=abc123")
        self.assertEqual(record.title, "Data Analyst")
        self.assertEqual(record.organization.url, "https://ca.indeed.com/cmp/Acme")
        self.assertEqual(record.source.platform, "indeed")
        self.assertEqual(record.details["salary_snippet"], "$25 an hour")
        self.assertIsNotNone(record.published_at)

    async def test_extract_basic_falls_back_to_href_key(self):
        card = _card()
        card.children["h2.jobTitle a"][0].attrs.pop("data-jk")

        record = await _strategy().extract_basic(card)

        self.assertEqual(record.id, "abc123")

    async def test_extract_basic_without_title_returns_none(self):
        self.assertIsNone(await _strategy().extract_basic(_card(title="")))

    async def test_extract_detail(self):
        page = FakePage(
            children={
                "#jobDescriptionText": [FakeElement(text="Analyze things.")],
                "#salaryInfoAndJobType": [FakeElement(text="$60,000 - $70,000 a year - Permanent")],
                "[data-testid='inlineHeader-companyLocation'], "
                "[data-testid='jobsearch-JobInfoHeader-companyLocation']": [FakeElement(text="Hybrid work in Montréal, QC")],
            }
        )
        strategy = _strategy(FakeSession(lambda: page))
        basic = await strategy.extract_basic(_card())

        with patch("utils.delays.random_delay", AsyncMock(return_value=0)):
            enriched = await strategy.extract_detail(basic)

        self.assertIsInstance(enriched, EnrichedRecord)
        self.assertEqual(enriched.description, "Analyze things.")
        self.assertEqual(enriched.details["salary"], "$60,000 - $70,000 a year")
        self.assertEqual(enriched.details["contract_type"], "Permanent")
        self.assertEqual(enriched.details["work_type"], "Hybrid work in Montréal, QC")
        self.assertEqual(enriched.organization.id, "Acme")
        self.assertEqual(page.visited, ["https://ca.indeed.com/viewjob?jk=abc123"])
