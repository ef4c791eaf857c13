"""
Platform registry for listing sources.

Each supported site is described once by a :class:`PlatformDescriptor`: the
pattern that recognizes its search URLs, the selector for repeated listing
cards, how to build a detail-page path from an item id, and the control that
loads more results. Detection walks descriptors in registration order so the
orchestrator can pick a strategy without branching on platform names.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import urljoin


@dataclass(frozen=True)
class PlatformDescriptor:
    platform: str
    url_pattern: re.Pattern
    listing_selector: str
    detail_path_template: str
    base_url: str
    load_more_selector: Optional[str] = None
    item_type: str = "job"
    pagination_wait_ms: Tuple[int, int] = (3000, 5000)

    def matches(self, url: str) -> bool:
        return bool(self.url_pattern.search(url))

    def detail_path(self, item_id: str) -> str:
        return self.detail_path_template.format(id=item_id)

    def detail_url(self, item_id: str, base_url: Optional[str] = None) -> str:
        return urljoin(base_url or self.base_url, self.detail_path(item_id))


LINKEDIN = PlatformDescriptor(
    platform="linkedin",
    url_pattern=re.compile(r"linkedin\.com", re.IGNORECASE),
    listing_selector=".job-search-card",
    detail_path_template="/jobs/view/{id}",
    base_url="https://www.linkedin.com",
    load_more_selector="button.infinite-scroller__show-more-button",
)

INDEED = PlatformDescriptor(
    platform="indeed",
    url_pattern=re.compile(r"indeed\.com", re.IGNORECASE),
    listing_selector=".job_seen_beacon",
    detail_path_template="/viewjob?jk={id}",
    base_url="https://www.indeed.com",
    # next page is a navigation, not an append; each configured URL is one result page
)

_PLATFORMS: Dict[str, PlatformDescriptor] = {
    LINKEDIN.platform: LINKEDIN,
    INDEED.platform: INDEED,
}


def register_platform(descriptor: PlatformDescriptor) -> None:
    """Register or override a descriptor for a platform slug."""
    _PLATFORMS[descriptor.platform] = descriptor


def get_descriptor(platform: str) -> PlatformDescriptor:
    """Return the descriptor for the requested platform."""
    try:
        return _PLATFORMS[platform]
    except KeyError as exc:
        raise ValueError(f"Unsupported platform: {platform}") from exc


def registered_platforms() -> List[str]:
    return list(_PLATFORMS)


def detect_platform(url: str) -> Optional[PlatformDescriptor]:
    """Return the first descriptor whose pattern matches ``url``, or None."""
    for descriptor in _PLATFORMS.values():
        if descriptor.matches(url):
            return descriptor
    return None
