import logging
import unittest
from datetime import datetime, timezone

from models import BasicRecord, SourceInfo
from pipeline import SqlRecordStore, configure_logging


def _record(item_id, platform="linkedin"):
    return BasicRecord(
        id=item_id,
        title="Data Engineer",
        url=f"https://www.linkedin.com/jobs/view/{item_id}",
        location="Montreal, QC",
        published_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
        source=SourceInfo(platform=platform, category="data"),
        details={"posted_time": "1 week ago"},
    )


class TestSqlRecordStore(unittest.TestCase):
    def setUp(self):
        self.store = SqlRecordStore("sqlite://")

    def test_search_configurations_round_trip(self):
        self.store.add_search_configuration(
            name="Data", url="https://www.linkedin.com/jobs/search?keywords=data", source="LinkedIn", category="data"
        )
        self.store.add_search_configuration(
            name="Paused", url="https://ca.indeed.com/jobs?q=x", source="indeed", active=False
        )

        active = self.store.get_search_configurations()
        everything = self.store.get_search_configurations(active_only=False)

        self.assertEqual([(config.name, config.source) for config in active], [("Data", "linkedin")])
        self.assertEqual(len(everything), 2)
        self.assertIsNotNone(active[0].id)

    def test_insert_and_read_existing_records(self):
        enriched = _record("2").enrich(description="Build", details={"contract_type": "Full-time"})

        inserted = self.store.insert_records([_record("1"), enriched])

        self.assertEqual([row["id"] for row in inserted], ["1", "2"])
        existing = self.store.get_existing_records()
        self.assertEqual(sorted(row["id"] for row in existing), ["1", "2"])

    def test_duplicate_ids_are_logged_and_skipped(self):
        self.store.insert_records([_record("1")])

        with self.assertLogs("pipeline", level="ERROR"):
            inserted = self.store.insert_records([_record("1"), _record("3")])

        self.assertEqual([row["id"] for row in inserted], ["3"])
        self.assertEqual(len(self.store.get_existing_records()), 2)

    def test_run_lifecycle(self):
        run_id = self.store.start_run(["linkedin"], {"fast": False})
        self.store.complete_run(run_id, 5, {"total_scraped": 8})

        run = self.store.get_run(run_id)
        self.assertTrue(run["completed"])
        self.assertEqual(run["total_records"], 5)
        self.assertEqual(run["summary"], {"total_scraped": 8})


class TestConfigureLogging(unittest.TestCase):
    def test_returns_root_logger(self):
        logger = configure_logging("run-7")
        self.assertIs(logger, logging.getLogger())
