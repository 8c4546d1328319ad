"""
Run a trade-disclosure sync from the command line.

Examples:
    python scripts/run_sync.py                      # daily-style sync
    python scripts/run_sync.py --test 5 --verbose   # small smoke test
    python scripts/run_sync.py --force --insiders   # update existing trades, include insiders
    python scripts/run_sync.py --backfill           # checkpointed historical backfill
    python scripts/run_sync.py --reset-checkpoints  # start every source from scratch
"""

import argparse
import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import build_engine, build_session_factory
from core.config import settings
from core.exceptions import SyncException
from core.logging import setup_logging
from ingestion.checkpoint import CheckpointStore
from ingestion.extractors.fmp_client import FMPClient
from ingestion.extractors.fmp_extractor import build_sources
from ingestion.loaders.trade_store import SQLAlchemyTradeStore
from ingestion.reconciler import ReconciliationEngine
from ingestion.runner import SyncOrchestrator
from models.base import SyncType
from schemas.sync import SyncOptions

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync trade disclosures from FMP")
    parser.add_argument("--test", nargs="?", type=int, const=5, default=None, metavar="N",
                        help="Smoke test: one page of N records per source (default 5)")
    parser.add_argument("--limit", type=int, default=None, help="Page size (max 250)")
    parser.add_argument("--max-pages", type=int, default=None, help="Maximum pages per source")
    parser.add_argument("--force", action="store_true", help="Update trades that already exist")
    parser.add_argument("--insiders", action="store_true", help="Also sync corporate insider trades")
    parser.add_argument("--batch-size", type=int, default=None, help="Checkpoint write interval")
    parser.add_argument("--no-checkpoints", action="store_true", help="Ignore and do not write checkpoints")
    parser.add_argument("--backfill", action="store_true", help=f"Crawl up to BACKFILL_MAX_PAGES ({settings.BACKFILL_MAX_PAGES})")
    parser.add_argument("--reset-checkpoints", action="store_true", help="Reset all checkpoints before syncing")
    parser.add_argument("--verbose", action="store_true", help="Debug logging and per-record progress")
    return parser


def build_options(args: argparse.Namespace) -> SyncOptions:
    values = {
        "force_update": args.force,
        "sync_insiders": args.insiders,
        "use_checkpoints": not args.no_checkpoints,
    }
    if args.test is not None:
        values["limit"] = args.test
        values["max_pages"] = 1
    if args.backfill:
        values["max_pages"] = settings.BACKFILL_MAX_PAGES
    if args.limit is not None:
        values["limit"] = args.limit
    if args.max_pages is not None:
        values["max_pages"] = args.max_pages
    if args.batch_size is not None:
        values["batch_size"] = args.batch_size
    return SyncOptions(**values)


def print_progress(current: int, total: int, label: str):
    if current == total or current % 50 == 0:
        logger.info(f"{label}: {current}/{total}")


async def run_sync(args: argparse.Namespace) -> int:
    options = build_options(args)
    engine = build_engine()
    session_factory = build_session_factory(engine)
    checkpoints = CheckpointStore(session_factory)

    try:
        async with FMPClient() as client:
            if not await client.test_connection():
                logger.error("Cannot reach FMP; aborting")
                return 1

            await checkpoints.ensure(list(SyncType))
            if args.reset_checkpoints:
                for sync_type in SyncType:
                    await checkpoints.reset(sync_type)
                logger.info("Checkpoints reset")

            orchestrator = SyncOrchestrator(
                sources=build_sources(client),
                engine=ReconciliationEngine(SQLAlchemyTradeStore(session_factory)),
                checkpoints=checkpoints,
            )
            result = await orchestrator.run(options, on_progress=print_progress if args.verbose else None)

            logger.info(f"Result: {result.summary()}")
            for error in result.errors[:20]:
                logger.error(f"  - {error}")
            if len(result.errors) > 20:
                logger.error(f"  ... and {len(result.errors) - 20} more")
            logger.info(f"Rate limits: {client.get_rate_limit_status()}")
            return 0 if result.success else 1

    except SyncException as e:
        logger.error(f"Sync failed: {e}")
        return 1
    finally:
        await engine.dispose()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else None)
    return asyncio.run(run_sync(args))


if __name__ == "__main__":
    sys.exit(main())
