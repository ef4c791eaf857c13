"""Pipeline storage and logging utilities.

This module provides the SQL-backed record store used for local development
and self-hosted deployments. It keeps the saved search configurations that
drive a crawl, every record that has been persisted (so new scrapes can be
deduplicated by id), and a small run log.
"""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    create_engine,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from models import BasicRecord, SearchConfiguration

Base = declarative_base()
_LOG_CONTEXT = {"run_id": "-"}

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Run(Base):
    __tablename__ = "runs"

    id = Column(String, primary_key=True)
    sources = Column(JSON, nullable=True)
    config = Column(JSON, nullable=True)
    started_at = Column(DateTime, nullable=False, default=_utcnow)
    completed_at = Column(DateTime, nullable=True)
    total_records = Column(Integer, nullable=True)
    summary = Column(JSON, nullable=True)


class SearchConfigurationRow(Base):
    __tablename__ = "search_configurations"

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    category = Column(Text, nullable=True)
    url = Column(Text, nullable=False)
    source = Column(String, nullable=False)
    active = Column(Boolean, nullable=False, default=True)


class RecordRow(Base):
    __tablename__ = "records"

    id = Column(String, primary_key=True)
    title = Column(Text, nullable=False)
    url = Column(Text, nullable=False)
    location = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    published_at = Column(DateTime, nullable=True)
    scraped_at = Column(DateTime, nullable=False)
    platform = Column(String, nullable=False)
    type = Column(String, nullable=True)
    category = Column(Text, nullable=True)
    organization_name = Column(Text, nullable=True)
    organization_url = Column(Text, nullable=True)
    organization_id = Column(String, nullable=True)
    details = Column(JSON, nullable=True)
    enriched = Column(Boolean, nullable=False, default=False)
    inserted_at = Column(DateTime, nullable=False, default=_utcnow)


def configure_logging(run_id: Optional[str] = None, level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger()
    _LOG_CONTEXT["run_id"] = run_id or "-"
    if logger.handlers:
        return logger
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s %(levelname)s [run:%(run_id)s] %(message)s")

    class ContextFilter(logging.Filter):
        def filter(self, record):
            record.run_id = _LOG_CONTEXT.get("run_id", "-")
            return True

    handler.addFilter(ContextFilter())
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


class SqlRecordStore:
    """Record store on top of SQLAlchemy sessions (SQLite by default)."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or os.getenv("DATABASE_URL", "sqlite:///data/scraper.db")
        if self.database_url.startswith("sqlite:///") and not self.database_url.startswith("sqlite:///:memory:"):
            Path(self.database_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(self.database_url)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine)

    @contextmanager
    def session(self) -> Session:
        session = self.Session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def add_search_configuration(
        self,
        *,
        name: str,
        url: str,
        source: str,
        category: str = "",
        active: bool = True,
    ) -> SearchConfiguration:
        with self.session() as session:
            row = SearchConfigurationRow(
                name=name,
                url=url,
                source=source.lower(),
                category=category,
                active=active,
            )
            session.add(row)
            session.flush()
            return self._config_from_row(row)

    def get_search_configurations(self, active_only: bool = True) -> List[SearchConfiguration]:
        with self.session() as session:
            query = session.query(SearchConfigurationRow)
            if active_only:
                query = query.filter(SearchConfigurationRow.active.is_(True))
            rows = query.order_by(SearchConfigurationRow.id).all()
            configs = [self._config_from_row(row) for row in rows]
        logger.info("Retrieved %d search configurations", len(configs))
        return configs

    def get_existing_records(self) -> List[dict]:
        with self.session() as session:
            rows = session.query(RecordRow.id, RecordRow.platform, RecordRow.url).all()
            existing = [{"id": row.id, "platform": row.platform, "url": row.url} for row in rows]
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
            row = record.to_row()
            try:
                with self.session() as session:
                    session.add(
                        RecordRow(
                            **{key: value for key, value in row.items() if key not in {"published_at", "scraped_at"}},
                            published_at=record.published_at,
                            scraped_at=record.scraped_at,
                        )
                    )
            except SQLAlchemyError as exc:
                logger.error("Error inserting record %d/%d (%s): %s", index, len(records), record.id, exc)
                continue
            inserted.append(row)

        logger.info("Successfully inserted %d records", len(inserted))
        return inserted

    def start_run(self, sources: List[str], config: dict, run_id: Optional[str] = None) -> str:
        run_identifier = run_id or str(uuid4())
        with self.session() as session:
            session.add(Run(id=run_identifier, sources=sources, config=config, started_at=_utcnow()))
        return run_identifier

    def complete_run(self, run_id: str, total_records: int, summary: Optional[dict] = None) -> None:
        with self.session() as session:
            run = session.query(Run).filter_by(id=run_id).one_or_none()
            if not run:
                return
            run.completed_at = _utcnow()
            run.total_records = total_records
            run.summary = summary or {}

    def get_run(self, run_id: str) -> Optional[dict]:
        with self.session() as session:
            run = session.query(Run).filter_by(id=run_id).one_or_none()
            if not run:
                return None
            return {
                "id": run.id,
                "sources": run.sources,
                "total_records": run.total_records,
                "summary": run.summary,
                "completed": run.completed_at is not None,
            }

    @staticmethod
    def _config_from_row(row: SearchConfigurationRow) -> SearchConfiguration:
        return SearchConfiguration(
            id=str(row.id),
            name=row.name,
            category=row.category or "",
            url=row.url,
            source=row.source,
            active=bool(row.active),
        )


__all__ = [
    "SqlRecordStore",
    "configure_logging",
]
