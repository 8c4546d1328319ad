import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker
from core.database import build_engine, build_session_factory
from core.config import settings
from core.exceptions import SyncInProgressError
from ingestion.checkpoint import CheckpointStore
from ingestion.extractors.fmp_client import FMPClient
from ingestion.extractors.fmp_extractor import build_sources
from ingestion.loaders.trade_store import SQLAlchemyTradeStore
from ingestion.reconciler import ReconciliationEngine
from ingestion.runner import SyncOrchestrator
from schemas.sync import SyncOptions, SyncResult

logger = logging.getLogger(__name__)


class SyncScheduler:
    """
    Owns the process-wide orchestrator and the APScheduler jobs.

    Jobs:
    - daily sync at DAILY_SYNC_HOUR
    - optional incremental sync every INCREMENTAL_SYNC_INTERVAL_MINUTES (force_update)
    Manual triggers (API, CLI) go through the same orchestrator so the
    single-flight guard covers them too.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker] = None, orchestrator: Optional[SyncOrchestrator] = None):
        self.scheduler = AsyncIOScheduler()
        self.engine = None
        if session_factory is None:
            self.engine = build_engine()
            session_factory = build_session_factory(self.engine)
        self.SessionLocal = session_factory
        self.checkpoints = CheckpointStore(self.SessionLocal)
        self._client: Optional[FMPClient] = None
        self._orchestrator = orchestrator

    @property
    def orchestrator(self) -> SyncOrchestrator:
        """Built lazily so the API can start without an FMP key configured."""
        if self._orchestrator is None:
            self._client = FMPClient()
            self._orchestrator = SyncOrchestrator(
                sources=build_sources(self._client),
                engine=ReconciliationEngine(SQLAlchemyTradeStore(self.SessionLocal)),
                checkpoints=self.checkpoints,
            )
        return self._orchestrator

    async def run_sync_job(self, options: Optional[SyncOptions] = None) -> Optional[SyncResult]:
        """Job body; failures are logged so the scheduler keeps running"""
        options = options or SyncOptions()
        logger.info("Scheduler: starting sync job")
        try:
            await self.checkpoints.ensure()
            result = await self.orchestrator.run(options)
        except SyncInProgressError:
            logger.warning("Scheduler: sync already running, skipping this trigger")
            return None
        except Exception:
            logger.exception("Scheduler: sync job failed")
            return None

        if result.success:
            logger.info(f"Scheduler: sync job completed {result.summary()}")
        else:
            logger.error(f"Scheduler: sync job finished with errors {result.summary()}")
            for error in result.errors[:10]:
                logger.error(f"  - {error}")
        return result

    async def run_daily_sync(self) -> Optional[SyncResult]:
        return await self.run_sync_job(SyncOptions(force_update=False))

    async def run_incremental_sync(self) -> Optional[SyncResult]:
        return await self.run_sync_job(SyncOptions(force_update=True))

    async def run_historical_backfill(self, sync_insiders: bool = False) -> Optional[SyncResult]:
        return await self.run_sync_job(SyncOptions(
            max_pages=settings.BACKFILL_MAX_PAGES,
            force_update=False,
            sync_insiders=sync_insiders,
            use_checkpoints=True,
        ))

    def get_status(self) -> dict:
        status = {"is_running": False, "last_run_time": None, "last_result": None}
        if self._orchestrator is not None:
            status.update(self._orchestrator.get_status())
            if self._client is not None:
                status["rate_limits"] = self._client.get_rate_limit_status()
        status["jobs"] = [
            {"id": job.id, "next_run_time": getattr(job, "next_run_time", None)}
            for job in self.scheduler.get_jobs()
        ]
        return status

    def force_stop(self) -> bool:
        if self._orchestrator is None or not self._orchestrator.is_running:
            return False
        self._orchestrator.force_stop()
        return True

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_daily_sync,
            trigger=CronTrigger(hour=settings.DAILY_SYNC_HOUR, minute=0),
            id="daily_sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        if settings.INCREMENTAL_SYNC_ENABLED:
            self.scheduler.add_job(
                self.run_incremental_sync,
                trigger=IntervalTrigger(minutes=settings.INCREMENTAL_SYNC_INTERVAL_MINUTES),
                id="incremental_sync",
                replace_existing=True,
                max_instances=1,
                coalesce=True
            )
        self.scheduler.start()
        logger.info(
            f"Sync scheduler started (daily at {settings.DAILY_SYNC_HOUR:02d}:00, "
            f"incremental={'on' if settings.INCREMENTAL_SYNC_ENABLED else 'off'})"
        )

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Sync scheduler stopped")

    async def aclose(self):
        self.stop()
        if self._client is not None:
            await self._client.aclose()
        if self.engine is not None:
            await self.engine.dispose()
