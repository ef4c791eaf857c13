from datetime import datetime, timezone

import pytest

from models import BasicRecord, EnrichedRecord, Organization, SearchConfiguration, SourceInfo


def _record(**overrides) -> BasicRecord:
    values = dict(
        id="3544610012",
        title="Data Engineer",
        url="https://www.linkedin.com/jobs/view/3544610012",
        location="Montreal, QC",
        published_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
        source=SourceInfo(platform="linkedin", category="data"),
        organization=Organization(name="Acme", url="https://www.linkedin.com/company/acme"),
        details={"posted_time": "2 weeks ago"},
    )
    values.update(overrides)
    return BasicRecord(**values)


def test_record_requires_id():
    with pytest.raises(ValueError):
        _record(id="")


def test_enrich_returns_new_record_and_leaves_original_untouched():
    basic = _record()

    enriched = basic.enrich(
        description="Build pipelines",
        details={"contract_type": "Full-time"},
        organization_id="acme",
    )

    assert isinstance(enriched, EnrichedRecord)
    assert enriched.enriched and not basic.enriched
    assert enriched.id == basic.id
    assert enriched.scraped_at == basic.scraped_at
    assert enriched.details == {"posted_time": "2 weeks ago", "contract_type": "Full-time"}
    assert enriched.organization.id == "acme"
    assert basic.details == {"posted_time": "2 weeks ago"}
    assert basic.organization.id == ""


def test_to_row_flattens_source_and_organization():
    row = _record().enrich(description="Desc", details={}).to_row()

    assert row["platform"] == "linkedin"
    assert row["category"] == "data"
    assert row["organization_name"] == "Acme"
    assert row["description"] == "Desc"
    assert row["published_at"] == "2024-05-01T00:00:00+00:00"
    assert row["enriched"] is True


def test_basic_row_has_empty_description():
    row = _record(published_at=None).to_row()
    assert row["description"] == ""
    assert row["published_at"] is None
    assert row["enriched"] is False


def test_search_configuration_from_dict():
    config = SearchConfiguration.from_dict(
        {"id": 4, "name": "Data", "category": "data", "url": "https://ca.indeed.com/jobs?q=data", "source": "Indeed"}
    )
    assert config.id == "4"
    assert config.source == "indeed"
    assert config.active is True
