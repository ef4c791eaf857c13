"""Canonical data models for scraped listing records.

Every platform strategy produces the same record shape so deduplication,
persistence and export can treat job postings and listings uniformly. A
:class:`BasicRecord` comes from a listing card; an :class:`EnrichedRecord`
is the same item after its detail page has been read.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(slots=True)
class SourceInfo:
    platform: str
    type: str = "job"
    category: str = ""


@dataclass(slots=True)
class Organization:
    name: str = ""
    url: Optional[str] = None
    id: str = ""


@dataclass
class BasicRecord:
    """Record built from a single listing card."""

    id: str
    title: str
    url: str
    location: str
    published_at: Optional[datetime]
    source: SourceInfo
    organization: Organization = field(default_factory=Organization)
    details: dict[str, str] = field(default_factory=dict)
    scraped_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Records require a non-empty id")

    @property
    def enriched(self) -> bool:
        return False

    def enrich(
        self,
        *,
        description: str,
        details: dict[str, str],
        organization_id: Optional[str] = None,
    ) -> "EnrichedRecord":
        """Return a new :class:`EnrichedRecord`; ``self`` is left untouched."""
        organization = Organization(
            name=self.organization.name,
            url=self.organization.url,
            id=organization_id if organization_id is not None else self.organization.id,
        )
        merged_details = dict(self.details)
        merged_details.update(details)
        base = {f.name: getattr(self, f.name) for f in fields(BasicRecord)}
        base.update(
            source=SourceInfo(self.source.platform, self.source.type, self.source.category),
            organization=organization,
            details=merged_details,
        )
        return EnrichedRecord(**base, description=description)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["published_at"] = _isoformat(self.published_at)
        payload["scraped_at"] = _isoformat(self.scraped_at)
        return payload

    def to_row(self) -> dict[str, Any]:
        """Flatten the record into a single storage row."""
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "location": self.location,
            "description": getattr(self, "description", ""),
            "published_at": _isoformat(self.published_at),
            "scraped_at": _isoformat(self.scraped_at),
            "platform": self.source.platform,
            "type": self.source.type,
            "category": self.source.category,
            "organization_name": self.organization.name,
            "organization_url": self.organization.url,
            "organization_id": self.organization.id,
            "details": json.loads(json.dumps(self.details)),
            "enriched": self.enriched,
        }


@dataclass
class EnrichedRecord(BasicRecord):
    """Record after a successful detail-page visit."""

    description: str = ""

    @property
    def enriched(self) -> bool:
        return True


@dataclass(slots=True)
class SearchConfiguration:
    """A saved search: one listing URL to crawl for a source platform."""

    id: Optional[str]
    name: str
    category: str
    url: str
    source: str
    active: bool = True

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SearchConfiguration":
        raw_id = payload.get("id")
        return cls(
            id=str(raw_id) if raw_id is not None else None,
            name=payload.get("name") or "",
            category=payload.get("category") or "",
            url=payload["url"],
            source=(payload.get("source") or "").lower(),
            active=bool(payload.get("active", True)),
        )


__all__ = [
    "BasicRecord",
    "EnrichedRecord",
    "Organization",
    "SearchConfiguration",
    "SourceInfo",
    "utc_now",
]
