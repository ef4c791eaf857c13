import unittest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import patch
from uuid import UUID

from models import BasicRecord, SourceInfo
from supabase_utils import PAGE_SIZE, SupabaseRecordStore, _get_env, sanitize_for_json


class FakeQuery:
    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.filters = []
        self.range_args = None
        self.payload = None
        self.action = "select"

    def select(self, columns):
        self.columns = columns
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def range(self, start, end):
        self.range_args = (start, end)
        return self

    def insert(self, payload):
        self.action = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.action = "update"
        self.payload = payload
        return self

    def execute(self):
        self.client.executed.append(self)
        if self.action == "insert":
            if self.payload.get("id") in self.client.failing_ids:
                raise RuntimeError("duplicate key value violates unique constraint")
            return SimpleNamespace(data=[self.payload])
        if self.action == "update":
            return SimpleNamespace(data=[self.payload])
        rows = self.client.rows.get(self.table, [])
        if self.filters:
            rows = [row for row in rows if all(row.get(col) == val for col, val in self.filters)]
        if self.range_args:
            start, end = self.range_args
            rows = rows[start : end + 1]
        return SimpleNamespace(data=rows)


class FakeClient:
    def __init__(self, rows=None, failing_ids=()):
        self.rows = rows or {}
        self.failing_ids = set(failing_ids)
        self.executed = []

    def table(self, name):
        return FakeQuery(self, name)


def _record(item_id):
    return BasicRecord(
        id=item_id,
        title="Analyst",
        url=f"https://www.indeed.com/viewjob?jk={item_id}",
        location="Laval, QC",
        published_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
        source=SourceInfo(platform="indeed", category="analytics"),
    )


class TestSanitizeForJson(unittest.TestCase):
    def test_converts_datetimes_and_uuids(self):
        now = datetime(2024, 3, 4, 5, 6, 7)
        payload = sanitize_for_json(
            {"scraped_at": now, "run": UUID(int=1), "nested": [{"at": now}], "n": 1, "none": None}
        )
        self.assertEqual(payload["scraped_at"], now.isoformat())
        self.assertEqual(payload["run"], "00000000-0000-0000-0000-000000000001")
        self.assertEqual(payload["nested"][0]["at"], now.isoformat())
        self.assertEqual(payload["n"], 1)
        self.assertIsNone(payload["none"])

    def test_converts_dataclasses(self):
        payload = sanitize_for_json(SourceInfo(platform="linkedin"))
        self.assertEqual(payload, {"platform": "linkedin", "type": "job", "category": ""})


class TestGetEnv(unittest.TestCase):
    def test_missing_variable_raises(self):
        with patch.dict("os.environ", {}, clear=True):
            with self.assertRaises(RuntimeError):
                _get_env("SUPABASE_URL")


class TestSupabaseRecordStore(unittest.TestCase):
    def test_get_search_configurations_filters_active(self):
        client = FakeClient(
            rows={
                "search_configurations": [
                    {"id": 1, "name": "Data", "category": "data", "url": "https://www.linkedin.com/jobs/search", "source": "linkedin", "active": True},
                    {"id": 2, "name": "Old", "category": "old", "url": "https://ca.indeed.com/jobs", "source": "indeed", "active": False},
                ]
            }
        )
        store = SupabaseRecordStore(client=client)

        active = store.get_search_configurations()
        everything = store.get_search_configurations(active_only=False)

        self.assertEqual([config.id for config in active], ["1"])
        self.assertEqual(len(everything), 2)

    def test_get_existing_records_reads_every_page(self):
        rows = [{"id": str(index)} for index in range(PAGE_SIZE + 5)]
        client = FakeClient(rows={"records": rows})

        existing = SupabaseRecordStore(client=client).get_existing_records()

        self.assertEqual(len(existing), PAGE_SIZE + 5)
        ranges = [query.range_args for query in client.executed]
        self.assertEqual(ranges, [(0, PAGE_SIZE - 1), (PAGE_SIZE, 2 * PAGE_SIZE - 1)])

    def test_insert_records_skips_failures(self):
        client = FakeClient(failing_ids={"b"})
        store = SupabaseRecordStore(client=client)

        inserted = store.insert_records([_record("a"), _record("b"), _record("c")])

        self.assertEqual([row["id"] for row in inserted], ["a", "c"])
        self.assertEqual(inserted[0]["published_at"], "2024-01-02T00:00:00+00:00")
        self.assertEqual(inserted[0]["platform"], "indeed")

    def test_insert_records_with_nothing_new(self):
        client = FakeClient()
        self.assertEqual(SupabaseRecordStore(client=client).insert_records([]), [])
        self.assertEqual(client.executed, [])

    def test_run_lifecycle(self):
        client = FakeClient()
        store = SupabaseRecordStore(client=client)

        run_id = store.start_run(["linkedin"], {"fast": True}, run_id="run-1")
        store.complete_run(run_id, 12, {"total_scraped": 20})

        start, finish = client.executed
        self.assertEqual(start.payload["id"], "run-1")
        self.assertIsInstance(start.payload["started_at"], str)
        self.assertEqual(finish.filters, [("id", "run-1")])
        self.assertEqual(finish.payload["total_records"], 12)


if __name__ == "__main__":
    unittest.main()
