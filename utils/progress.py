from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class CrawlCounts:
    unsupported_source: int = 0
    listing_failures: int = 0
    dropped_cards: int = 0
    detail_fallbacks: int = 0
    errors: int = 0


class ProgressTracker:
    """Append one JSONL snapshot per crawled URL."""

    def __init__(self, run_id: str, output_dir: Path | str = Path("data/runs")) -> None:
        self.run_id = run_id
        self.urls_done = 0
        self.total_records = 0
        self.counts = CrawlCounts()
        self._started = time.monotonic()
        self.output_path = Path(output_dir) / f"{run_id}.progress.jsonl"
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

    def update(
        self,
        *,
        url: str | None = None,
        category: str | None = None,
        records_delta: int = 0,
        unsupported_source: bool = False,
        listing_failure: bool = False,
        dropped_cards: int = 0,
        detail_fallbacks: int = 0,
        error: bool = False,
    ) -> dict[str, Any]:
        self.urls_done += 1
        self.total_records += records_delta
        self.counts.unsupported_source += int(unsupported_source)
        self.counts.listing_failures += int(listing_failure)
        self.counts.dropped_cards += dropped_cards
        self.counts.detail_fallbacks += detail_fallbacks
        self.counts.errors += int(error)

        snapshot = {
            "run_id": self.run_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "url": url,
            "category": category,
            "urls_done": self.urls_done,
            "total_records": self.total_records,
            "counts": asdict(self.counts),
            "elapsed_seconds": round(time.monotonic() - self._started, 2),
        }
        with self.output_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(snapshot) + "\n")
        return snapshot

    def format_line(self, snapshot: dict[str, Any]) -> str:
        counts = " ".join(f"{name}={value}" for name, value in snapshot["counts"].items())
        line = f"[PROGRESS] urls={snapshot['urls_done']} records={snapshot['total_records']} | {counts}"
        if snapshot.get("category"):
            line += f" | category={snapshot['category']}"
        return line


def write_status_file(status: dict[str, Any], path: Path | str = Path("status.json")) -> None:
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(status, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
