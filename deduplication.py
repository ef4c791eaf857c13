"""Filter scraped records against ids that are already stored."""
from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

R = TypeVar("R")


def record_id(item: Any) -> Optional[str]:
    """Return the id of a record object or a stored row dict."""
    if isinstance(item, dict):
        value = item.get("id")
    else:
        value = getattr(item, "id", None)
    return str(value) if value is not None else None


def filter_new(scraped: Sequence[R], existing: Iterable[Any]) -> List[R]:
    """Return the scraped records whose id is not present in ``existing``.

    Ids are compared as exact strings and the scraped order is preserved.
    """
    existing_ids = {record_id(item) for item in existing}
    existing_ids.discard(None)
    new_items = [item for item in scraped if record_id(item) not in existing_ids]
    logger.info(
        "Deduplicated %d scraped records against %d existing ids: %d new",
        len(scraped),
        len(existing_ids),
        len(new_items),
    )
    return new_items
