from datetime import datetime, timedelta, timezone

import pytest

from extraction import (
    estimate_date_from_relative_time,
    get_strategy,
    match_workplace_type,
    parse_published_at,
    sanitize_text,
)
from indeed_scraper import IndeedStrategy
from linkedin_scraper import LinkedInStrategy

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("3 days ago", NOW - timedelta(days=3)),
        ("Posted 30+ days ago", NOW - timedelta(days=30)),
        ("1 week ago", NOW - timedelta(weeks=1)),
        ("2 months ago", NOW - timedelta(days=60)),
        ("1 year ago", NOW - timedelta(days=365)),
        ("5 hours ago", NOW - timedelta(hours=5)),
        ("Just posted", NOW),
        ("Today", NOW),
        ("Yesterday", NOW - timedelta(days=1)),
    ],
)
def test_estimate_date_from_relative_time(text, expected):
    assert estimate_date_from_relative_time(text, now=NOW) == expected


def test_estimate_date_unparseable_text():
    assert estimate_date_from_relative_time("Hiring now", now=NOW) is None
    assert estimate_date_from_relative_time("", now=NOW) is None


def test_parse_published_at_prefers_datetime_attribute():
    parsed = parse_published_at("2024-05-01", "3 days ago", now=NOW)
    assert parsed == datetime(2024, 5, 1, tzinfo=timezone.utc)


def test_parse_published_at_falls_back_to_relative_text():
    assert parse_published_at("not-a-date", "2 days ago", now=NOW) == NOW - timedelta(days=2)
    assert parse_published_at(None, None) is None


def test_match_workplace_type():
    assert match_workplace_type(["Montreal, QC", " Remote "]) == "Remote"
    assert match_workplace_type(["Montreal, QC"]) == ""


def test_sanitize_text_collapses_whitespace():
    assert sanitize_text("  Senior\n  Data   Engineer ") == "Senior Data Engineer"
    assert sanitize_text(None) == ""


def test_strategies_are_registered_by_platform():
    assert get_strategy("linkedin") is LinkedInStrategy
    assert get_strategy("indeed") is IndeedStrategy
    with pytest.raises(ValueError):
        get_strategy("monster")
