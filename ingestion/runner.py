# ============================================================================
# File: ingestion/runner.py
# Description: Sync orchestrator with checkpointed, partial-failure tolerant runs
# ============================================================================
"""
Sync Orchestrator - drives every disclosure source through
fetch -> normalize -> reconcile -> checkpoint.

This module provides:
- Sequential per-source syncs (one in-flight HTTP call, globally counted limits)
- Partial failure support (a bad record never aborts the batch)
- Resume from last_processed_index + 1 after an interruption
- Single-flight guard and cooperative stop
- Aggregated SyncResult for the scheduler, API and CLI
"""

from datetime import datetime
from typing import Callable, List, Optional, Sequence
import logging
import time

from core.exceptions import (
    AuthenticationError,
    CheckpointError,
    RecordError,
    SyncException,
    SyncInProgressError
)
from ingestion.base import DataSource
from ingestion.checkpoint import CheckpointStore, fingerprint_records
from ingestion.reconciler import ReconciliationEngine
from models.base import SyncStatus, SyncType
from schemas.sync import SyncCounts, SyncOptions, SyncResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


class SyncOrchestrator:
    """
    Top-level sync driver.

    Responsibilities:
    - Run sources sequentially, never concurrently
    - Resume interrupted sources from their checkpoint
    - Advance checkpoints every `batch_size` records
    - Mark checkpoints completed only after a clean full pass
    - Aggregate per-source results
    """

    def __init__(
        self,
        sources: Sequence[DataSource],
        engine: ReconciliationEngine,
        checkpoints: Optional[CheckpointStore] = None
    ):
        self.sources = list(sources)
        self.engine = engine
        self.checkpoints = checkpoints

        self._running = False
        self._stop_requested = False
        self.last_run_time: Optional[datetime] = None
        self.last_result: Optional[SyncResult] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def force_stop(self):
        """Ask the running sync to stop at the next record boundary."""
        if self._running:
            logger.warning("Stop requested; sync will halt after the current record")
            self._stop_requested = True

    def get_status(self) -> dict:
        return {
            "is_running": self._running,
            "last_run_time": self.last_run_time,
            "last_result": self.last_result.summary() if self.last_result else None,
        }

    def _select_sources(self, options: SyncOptions) -> List[DataSource]:
        return [
            s for s in self.sources
            if s.sync_type != SyncType.INSIDERS or options.sync_insiders
        ]

    async def run(
        self,
        options: Optional[SyncOptions] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> SyncResult:
        """
        Run a full sync over all selected sources.

        Raises:
            SyncInProgressError: if another run is active
        """
        if self._running:
            raise SyncInProgressError("Sync job is already running")

        options = options or SyncOptions()
        self._running = True
        self._stop_requested = False
        started_at = datetime.utcnow()
        started = time.perf_counter()
        results: List[SyncResult] = []

        logger.info(
            f"Starting sync (limit={options.limit}, max_pages={options.max_pages}, "
            f"force_update={options.force_update}, insiders={options.sync_insiders}, "
            f"checkpoints={options.use_checkpoints})"
        )

        try:
            for source in self._select_sources(options):
                if self._stop_requested:
                    logger.warning(f"Stop requested, skipping {source.label}")
                    break
                try:
                    results.append(await self.sync_source(source, options, on_progress))
                except AuthenticationError as e:
                    logger.error(f"Authentication failed during {source.label} sync, aborting run: {e}")
                    results.append(SyncResult(
                        success=False,
                        sync_type=source.sync_type.value,
                        errors=[f"{source.label} sync aborted: {e.message}"],
                    ))
                    break
        finally:
            self._running = False

        combined = SyncResult.combine(results, started_at=started_at)
        combined.duration = time.perf_counter() - started
        if self._stop_requested:
            combined.stopped = True
            combined.success = False

        self.last_run_time = started_at
        self.last_result = combined

        logger.info(
            f"Sync finished: success={combined.success} processed={combined.processed_count} "
            f"created={combined.created_count} updated={combined.updated_count} "
            f"skipped={combined.skipped_count} errors={len(combined.errors)} "
            f"in {combined.duration:.2f}s"
        )
        return combined

    async def sync_source(
        self,
        source: DataSource,
        options: SyncOptions,
        on_progress: Optional[ProgressCallback] = None
    ) -> SyncResult:
        """
        Sync one source.

        Raises:
            AuthenticationError: credentials rejected; the whole run must stop
        """
        sync_type = source.sync_type
        result = SyncResult(sync_type=sync_type.value)
        counts = SyncCounts()
        started = time.perf_counter()
        use_checkpoints = options.use_checkpoints and self.checkpoints is not None
        begun = False
        last_index = -1

        try:
            # --------------------------------------------------
            # PHASE 1: FETCH
            # --------------------------------------------------
            logger.info(f"Fetching {source.label} trades")
            fetched = await source.fetch_all(max_pages=options.max_pages, page_size=options.limit)
            result.pages_fetched = fetched.pages_fetched
            result.pages_failed = fetched.pages_failed
            result.errors.extend(fetched.errors)

            records = fetched.records
            total = len(records)
            start = 0

            # --------------------------------------------------
            # PHASE 2: CHECKPOINT / RESUME
            # --------------------------------------------------
            if use_checkpoints:
                fingerprint = fingerprint_records(records)
                checkpoint = await self.checkpoints.load(sync_type)
                resume = False
                if checkpoint is not None and checkpoint.status in (SyncStatus.IN_PROGRESS, SyncStatus.FAILED):
                    if checkpoint.total_records == total and checkpoint.fingerprint == fingerprint:
                        resume = True
                        start = checkpoint.last_processed_index + 1
                        counts = SyncCounts(
                            created=checkpoint.created_count,
                            updated=checkpoint.updated_count,
                            skipped=checkpoint.skipped_count,
                            errors=checkpoint.error_count,
                        )
                        result.resumed_from = start
                        if counts.errors:
                            result.errors.append(
                                f"{source.label}: {counts.errors} record error(s) before resuming at record {start + 1}"
                            )
                        logger.info(f"Resuming {source.label} sync at record {start + 1}/{total}")
                    else:
                        logger.warning(
                            f"{source.label} fetched set changed since the checkpoint "
                            f"({checkpoint.total_records} -> {total} records); restarting from the first record"
                        )

                await self.checkpoints.begin(sync_type, total, resume=resume, fingerprint=fingerprint)
                begun = True
                last_index = start - 1

            # --------------------------------------------------
            # PHASE 3: NORMALIZE + RECONCILE
            # --------------------------------------------------
            for index in range(start, total):
                if self._stop_requested:
                    result.stopped = True
                    logger.warning(f"{source.label} sync stopped at record {index + 1}/{total}")
                    break

                try:
                    outcome = await self.engine.process(
                        records[index],
                        source.source_kind,
                        position=index + 1,
                        force_update=options.force_update,
                        label=source.label,
                    )
                    counts.record(outcome.action)
                except RecordError as e:
                    counts.errors += 1
                    result.errors.append(e.message)
                    logger.warning(e.message)

                last_index = index
                if on_progress:
                    on_progress(index + 1, total, source.label)

                if use_checkpoints and (index + 1 - start) % options.batch_size == 0:
                    await self.checkpoints.advance(sync_type, index, counts)

            # --------------------------------------------------
            # PHASE 4: FINALIZE CHECKPOINT
            # --------------------------------------------------
            if use_checkpoints:
                if result.stopped:
                    await self.checkpoints.advance(sync_type, last_index, counts)
                elif fetched.pages_failed:
                    await self.checkpoints.fail(
                        sync_type,
                        reason=f"{fetched.pages_failed} page(s) failed: {fetched.failed_pages}",
                        index=last_index,
                        counts=counts,
                    )
                else:
                    await self.checkpoints.complete(sync_type, counts)

        except AuthenticationError as e:
            if begun:
                await self._mark_failed(sync_type, e.message, last_index, counts, result)
            raise

        except Exception as e:
            message = e.message if isinstance(e, SyncException) else str(e)
            logger.exception(f"{source.label} sync failed")
            result.errors.append(f"{source.label} sync failed: {message}")
            if begun:
                await self._mark_failed(sync_type, message, last_index, counts, result)

        finally:
            result.apply_counts(counts)
            result.duration = time.perf_counter() - started
            result.success = not result.errors and not counts.errors and not result.stopped

        logger.info(
            f"{source.label} sync: processed={result.processed_count} created={result.created_count} "
            f"updated={result.updated_count} skipped={result.skipped_count} "
            f"errors={len(result.errors)} pages={result.pages_fetched} failed_pages={result.pages_failed}"
        )
        return result

    async def _mark_failed(self, sync_type, reason, index, counts, result):
        try:
            await self.checkpoints.fail(sync_type, reason=reason, index=index, counts=counts)
        except CheckpointError as cp_error:
            logger.error(f"Could not mark {sync_type.value} checkpoint failed: {cp_error}")
            result.errors.append(cp_error.message)
