"""Supabase persistence helpers for the listing scraper.

This module encapsulates Supabase connections and the record store used by
hosted deployments: saved search configurations are read from one table and
scraped records are appended to another, keyed by their platform id.
"""
from __future__ import annotations

import logging
import os
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from typing import Any, Iterable, List, Optional
from uuid import UUID, uuid4

from supabase import Client, create_client

from models import BasicRecord, SearchConfiguration

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000


def _get_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def get_supabase_client() -> Client:
    """Create a Supabase client from environment variables."""
    url = _get_env("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or _get_env("SUPABASE_ANON_KEY")
    return create_client(url, key)


def sanitize_for_json(value: Any) -> Any:
    """Convert datetimes, UUIDs and dataclasses into JSON-safe values."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if is_dataclass(value) and not isinstance(value, type):
        return sanitize_for_json(asdict(value))
    if isinstance(value, dict):
        return {key: sanitize_for_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [sanitize_for_json(item) for item in value]
    return value


class SupabaseRecordStore:
    """Record store backed by Supabase tables."""

    def __init__(
        self,
        client: Optional[Client] = None,
        records_table: str = "records",
        configs_table: str = "search_configurations",
        runs_table: str = "runs",
    ):
        self.client = client or get_supabase_client()
        self.records_table = records_table
        self.configs_table = configs_table
        self.runs_table = runs_table

    def get_search_configurations(self, active_only: bool = True) -> List[SearchConfiguration]:
        query = self.client.table(self.configs_table).select("*")
        if active_only:
            query = query.eq("active", True)
        response = query.execute()
        configs = [SearchConfiguration.from_dict(row) for row in response.data or []]
        logger.info("Retrieved %d search configurations", len(configs))
        return configs

    def get_existing_records(self) -> List[dict]:
        """Return ``{"id": ...}`` rows for every stored record, page by page."""
        existing: List[dict] = []
        start = 0
        while True:
            response = (
                self.client.table(self.records_table)
                .select("id")
                .range(start, start + PAGE_SIZE - 1)
                .execute()
            )
            page = response.data or []
            existing.extend(page)
            if len(page) < PAGE_SIZE:
                break
            start += PAGE_SIZE
        logger.info("Retrieved %d existing records", len(existing))
        return existing

    def insert_records(self, records: Iterable[BasicRecord]) -> List[dict]:
        """Insert records one by one; a failing record is logged and skipped."""
        records = list(records)
        if not records:
            logger.info("No new records to insert")
            return []

        inserted: List[dict] = []
        for index, record in enumerate(records, start=1):
            row = sanitize_for_json(record.to_row())
            try:
                response = self.client.table(self.records_table).insert(row).execute()
            except Exception as exc:
                logger.error("Error inserting record %d/%d (%s): %s", index, len(records), record.id, exc)
                continue
            inserted.extend(response.data or [row])

        logger.info("Successfully inserted %d records", len(inserted))
        return inserted

    def start_run(self, sources: List[str], config: dict, run_id: Optional[str] = None) -> str:
        run_identifier = run_id or str(uuid4())
        self.client.table(self.runs_table).insert(
            sanitize_for_json(
                {
                    "id": run_identifier,
                    "sources": sources,
                    "config": config,
                    "status": "running",
                    "started_at": datetime.utcnow(),
                }
            )
        ).execute()
        return run_identifier

    def complete_run(self, run_id: str, total_records: int, summary: Optional[dict] = None) -> None:
        payload = {
            "completed_at": datetime.utcnow(),
            "status": "completed",
            "total_records": total_records,
            "summary": summary or {},
        }
        self.client.table(self.runs_table).update(sanitize_for_json(payload)).eq("id", run_id).execute()


__all__ = [
    "SupabaseRecordStore",
    "get_supabase_client",
    "sanitize_for_json",
]
