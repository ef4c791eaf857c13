"""
Scheduled ingestion runner for the listing scraper.

This CLI loads saved search configurations (from a JSON config, the record
store, or ``<SOURCE>_URL_<CATEGORY>`` environment variables), crawls them one
(source, category) group at a time, and appends only records whose id is not
already stored. It is meant to be invoked by an external scheduler.
"""
import argparse
import asyncio
import json
import logging
from collections import OrderedDict
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from browser_session import BrowserSessionError
from config import load_env_search_configurations, load_settings
from deduplication import filter_new
from models import SearchConfiguration
from pipeline import SqlRecordStore, configure_logging
from supabase_utils import SupabaseRecordStore
from universal_scraper import ScrapeOptions, UniversalScraper, apply_overrides, save_to_csv
from utils.progress import ProgressTracker, write_status_file

logger = logging.getLogger(__name__)

GroupKey = Tuple[str, str]


def load_config(config_path: Path) -> dict:
    with config_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def configurations_from_config(config: dict, active_only: bool = True) -> List[SearchConfiguration]:
    configs = [SearchConfiguration.from_dict(entry) for entry in config.get("searches", [])]
    if active_only:
        configs = [config for config in configs if config.active]
    return configs


def load_search_configurations(args: argparse.Namespace, store) -> List[SearchConfiguration]:
    """Return the worklist: JSON config first, then the store, then the environment."""
    active_only = not args.include_inactive
    if args.config:
        config_path = Path(args.config)
        if config_path.exists():
            configs = configurations_from_config(load_config(config_path), active_only=active_only)
            logger.info("Loaded %d search configurations from %s", len(configs), config_path)
            return configs
        logger.warning("Config file %s not found; falling back to the record store", config_path)

    configs: List[SearchConfiguration] = []
    if store is not None:
        try:
            configs = store.get_search_configurations(active_only=active_only)
        except Exception as exc:
            logger.warning("Could not read search configurations from the store: %s", exc)
            logger.warning("Falling back to environment variables")
    if not configs:
        configs = load_env_search_configurations()
        logger.info("Using %d search configurations from environment variables", len(configs))
    return configs


def filter_sources(configs: List[SearchConfiguration], sources: Optional[str]) -> List[SearchConfiguration]:
    if not sources:
        return configs
    wanted = {source.strip().lower() for source in sources.split(",") if source.strip()}
    return [config for config in configs if config.source in wanted]


def group_configurations(configs: List[SearchConfiguration]) -> "OrderedDict[GroupKey, List[str]]":
    """Group URLs by (source, category), keeping first-seen order."""
    groups: "OrderedDict[GroupKey, List[str]]" = OrderedDict()
    for config in configs:
        groups.setdefault((config.source, config.category), []).append(config.url)
    return groups


def build_store(args: argparse.Namespace):
    """Return the configured record store, or None if it cannot be reached."""
    try:
        if args.use_supabase:
            return SupabaseRecordStore()
        return SqlRecordStore(args.database_url)
    except Exception as exc:
        logger.warning("Record store unavailable, continuing without persistence: %s", exc)
        return None


async def run_group(
    key: GroupKey,
    urls: List[str],
    scraper: UniversalScraper,
    store,
    args: argparse.Namespace,
) -> Dict[str, int]:
    source, category = key
    started_at = datetime.utcnow()
    logger.info("=" * 60)
    logger.info("Source: %s | Category: %s | URLs: %d", source, category or "-", len(urls))
    logger.info("=" * 60)

    context = await scraper.crawl(urls, ScrapeOptions(detailed=not args.fast, category=category))
    records = context.records

    existing = store.get_existing_records() if store is not None else []
    new_records = filter_new(records, existing)

    inserted = 0
    if args.dry_run:
        logger.info("Dry run: skipping insert of %d new records", len(new_records))
    elif store is not None:
        inserted = len(store.insert_records(new_records))

    if args.save_csv_dir and records:
        output_dir = Path(args.save_csv_dir)
        safe_name = f"{source}_{category or 'all'}".replace("/", "_").replace(" ", "_")
        csv_path = output_dir / f"{safe_name}_{started_at.strftime('%Y%m%d_%H%M%S')}.csv"
        save_to_csv(records, str(csv_path))

    stats = context.stats
    return {
        "scraped": len(records),
        "new": len(new_records),
        "inserted": inserted,
        "unsupported_sources": stats.unsupported_sources,
        "listing_failures": stats.listing_failures,
        "dropped_cards": stats.dropped_cards,
        "detail_fallbacks": stats.detail_fallbacks,
        "errors": stats.errors,
    }


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Scheduled listing ingestion runner")
    parser.add_argument("--config", type=str, help="Path to a JSON file with a 'searches' list")
    parser.add_argument(
        "--database-url",
        type=str,
        help="SQLAlchemy database URL (defaults to DATABASE_URL or sqlite:///data/scraper.db)",
    )
    parser.add_argument(
        "--use-supabase",
        action="store_true",
        help="Read configurations and store records in Supabase (requires SUPABASE_URL and keys)",
    )
    parser.add_argument("--sources", type=str, help="Comma-separated platforms to run (e.g. linkedin,indeed)")
    parser.add_argument("--fast", action="store_true", help="Skip detail pages (basic records only)")
    parser.add_argument("--max-items-per-url", type=int, help="Override MAX_ITEMS_PER_URL")
    parser.add_argument("--total-items-limit", type=int, help="Override TOTAL_ITEMS_LIMIT")
    parser.add_argument("--concurrency", type=int, help="Override CONCURRENCY_LIMIT")
    parser.add_argument("--save-csv-dir", type=str, help="Optional directory for one timestamped CSV per group")
    parser.add_argument("--status-file", type=str, help="Write a JSON run summary to this path")
    parser.add_argument("--show-progress", action="store_true", help="Show per-URL progress bars")
    parser.add_argument("--dry-run", action="store_true", help="Scrape and deduplicate without inserting")
    parser.add_argument(
        "--include-inactive",
        action="store_true",
        help="Also run search configurations marked inactive",
    )
    return parser.parse_args(argv)


async def run_ingestion(args: argparse.Namespace, store=None) -> dict:
    run_id = str(uuid4())
    configure_logging(run_id)
    store = store if store is not None else build_store(args)

    configs = filter_sources(load_search_configurations(args, store), args.sources)
    groups = group_configurations(configs)
    status = {
        "run_id": run_id,
        "started_at": datetime.utcnow().isoformat(),
        "groups": {},
        "total_scraped": 0,
        "total_inserted": 0,
        "failed_groups": [],
    }
    if not groups:
        logger.info("No search configurations to run.")
        status["completed_at"] = datetime.utcnow().isoformat()
        if args.status_file:
            write_status_file(status, args.status_file)
        return status

    settings = apply_overrides(load_settings(), args)
    if store is not None:
        try:
            store.start_run(
                sorted({key[0] for key in groups}),
                {"fast": args.fast, "dry_run": args.dry_run, "groups": len(groups)},
                run_id=run_id,
            )
        except Exception as exc:
            logger.warning("Could not record start of run %s: %s", run_id, exc)
    scraper = UniversalScraper(settings, show_progress=args.show_progress, progress=ProgressTracker(run_id))

    try:
        for key, urls in groups.items():
            label = f"{key[0]}:{key[1]}"
            try:
                summary = await run_group(key, urls, scraper, store, args)
            except BrowserSessionError as exc:
                logger.error("Browser session failed for %s: %s", label, exc)
                status["failed_groups"].append(label)
                continue
            except Exception:
                logger.exception("Group %s failed", label)
                status["failed_groups"].append(label)
                continue
            status["groups"][label] = summary
            status["total_scraped"] += summary["scraped"]
            status["total_inserted"] += summary["inserted"]
    finally:
        _finish_run(store, status, args)
    return status


def _finish_run(store, status: dict, args: argparse.Namespace) -> None:
    status["completed_at"] = datetime.utcnow().isoformat()
    if store is not None:
        try:
            store.complete_run(
                status["run_id"],
                status["total_inserted"],
                {"total_scraped": status["total_scraped"], "failed_groups": status["failed_groups"]},
            )
        except Exception:
            logger.exception("Could not record completion of run %s", status["run_id"])
    logger.info(
        "Run complete: %d scraped, %d inserted, %d failed groups",
        status["total_scraped"],
        status["total_inserted"],
        len(status["failed_groups"]),
    )
    if args.status_file:
        write_status_file(status, args.status_file)


def main():
    args = parse_args()
    asyncio.run(run_ingestion(args))


if __name__ == "__main__":
    main()
