import json
import tempfile
import unittest
from pathlib import Path

from utils.progress import ProgressTracker, write_status_file


class TestProgressTracker(unittest.TestCase):
    def test_update_accumulates_counts_and_writes_jsonl(self):
        with tempfile.TemporaryDirectory() as tmp:
            tracker = ProgressTracker("run-42", output_dir=tmp)

            tracker.update(url="https://www.linkedin.com/jobs/search", category="data", records_delta=10, dropped_cards=2)
            snapshot = tracker.update(url="https://example.com", unsupported_source=True)

            lines = tracker.output_path.read_text(encoding="utf-8").splitlines()

        self.assertEqual(len(lines), 2)
        self.assertEqual(json.loads(lines[0])["category"], "data")
        self.assertEqual(snapshot["urls_done"], 2)
        self.assertEqual(snapshot["total_records"], 10)
        self.assertEqual(snapshot["counts"]["dropped_cards"], 2)
        self.assertEqual(snapshot["counts"]["unsupported_source"], 1)
        self.assertEqual(snapshot["counts"]["errors"], 0)

    def test_format_line(self):
        with tempfile.TemporaryDirectory() as tmp:
            tracker = ProgressTracker("run-1", output_dir=tmp)
            line = tracker.format_line(tracker.update(records_delta=4, category="ops", listing_failure=True))

        self.assertTrue(line.startswith("[PROGRESS] urls=1 records=4"))
        self.assertIn("listing_failures=1", line)
        self.assertIn("category=ops", line)


def test_write_status_file_creates_parent(tmp_path: Path):
    target = tmp_path / "nested" / "status.json"
    write_status_file({"run_id": "abc", "total_inserted": 3}, target)
    assert json.loads(target.read_text(encoding="utf-8")) == {"run_id": "abc", "total_inserted": 3}
