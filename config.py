"""Runtime settings for the scraper, read from environment variables.

Values mirror the deployment knobs of the scraping worker: per-URL and total
item caps, detail-page concurrency, navigation timeout and retry count. Search
configurations can also be declared through ``<SOURCE>_URL_<CATEGORY>``
variables when no record store is reachable.
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from models import SearchConfiguration

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS_PER_URL = 200
DEFAULT_TOTAL_ITEMS_LIMIT = 600
DEFAULT_CONCURRENCY_LIMIT = 3
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_REQUEST_TIMEOUT_MS = 30000
DEFAULT_MAX_SCROLL_ATTEMPTS = 20

_ENV_URL_PATTERN = re.compile(r"^([A-Z]+)_URL_(.+)$")


@dataclass
class ScraperSettings:
    max_items_per_url: int = DEFAULT_MAX_ITEMS_PER_URL
    total_items_limit: int = DEFAULT_TOTAL_ITEMS_LIMIT
    concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS
    max_scroll_attempts: int = DEFAULT_MAX_SCROLL_ATTEMPTS
    headless: bool = True


def _int_from_env(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %s", name, raw, default)
        return default


def _bool_from_env(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_settings(environ: Optional[Mapping[str, str]] = None) -> ScraperSettings:
    """Build :class:`ScraperSettings` from the environment."""
    env = os.environ if environ is None else environ
    return ScraperSettings(
        max_items_per_url=_int_from_env(env, "MAX_ITEMS_PER_URL", DEFAULT_MAX_ITEMS_PER_URL),
        total_items_limit=_int_from_env(env, "TOTAL_ITEMS_LIMIT", DEFAULT_TOTAL_ITEMS_LIMIT),
        concurrency_limit=_int_from_env(env, "CONCURRENCY_LIMIT", DEFAULT_CONCURRENCY_LIMIT),
        retry_attempts=_int_from_env(env, "RETRY_ATTEMPTS", DEFAULT_RETRY_ATTEMPTS),
        request_timeout_ms=_int_from_env(env, "REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT_MS),
        max_scroll_attempts=_int_from_env(env, "MAX_SCROLL_ATTEMPTS", DEFAULT_MAX_SCROLL_ATTEMPTS),
        headless=_bool_from_env(env, "HEADLESS", True),
    )


def load_env_search_configurations(
    environ: Optional[Mapping[str, str]] = None,
) -> list[SearchConfiguration]:
    """Collect search URLs declared as ``<SOURCE>_URL_<CATEGORY>`` variables.

    ``LINKEDIN_URL_DATA_ENGINEERING=https://...`` becomes a configuration with
    source ``linkedin``, category ``data engineering`` and name
    ``DATA ENGINEERING``. Results are sorted by variable name so the worklist
    order is stable between runs.
    """
    env = os.environ if environ is None else environ
    configs: list[SearchConfiguration] = []
    for key in sorted(env):
        match = _ENV_URL_PATTERN.match(key)
        if not match or not env[key]:
            continue
        source, raw_category = match.groups()
        configs.append(
            SearchConfiguration(
                id=None,
                name=raw_category.replace("_", " "),
                category=raw_category.lower().replace("_", " "),
                url=env[key],
                source=source.lower(),
            )
        )
    return configs
