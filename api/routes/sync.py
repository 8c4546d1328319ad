"""
Manual sync triggers and status
"""

from typing import List
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from api.dependencies import get_scheduler
from core.config import settings
from ingestion.scheduler import SyncScheduler
from schemas.api import CheckpointInfo, SyncAcceptedResponse, SyncRequest, SyncStatusResponse
from schemas.sync import SyncOptions
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sync", tags=["Sync"])


def _ensure_idle(scheduler: SyncScheduler):
    if scheduler.get_status()["is_running"]:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Sync job is already running")


@router.post("/now", response_model=SyncAcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def trigger_sync(
    background_tasks: BackgroundTasks,
    body: SyncRequest = None,
    scheduler: SyncScheduler = Depends(get_scheduler)
):
    """Start a sync in the background; returns immediately."""
    _ensure_idle(scheduler)
    options = SyncOptions(**(body.to_options_dict() if body else {}))
    background_tasks.add_task(scheduler.run_sync_job, options)
    logger.info(f"Manual sync triggered: {options.dict()}")
    return SyncAcceptedResponse(message="Sync started", options=options.dict())


@router.post("/backfill", response_model=SyncAcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def trigger_backfill(
    background_tasks: BackgroundTasks,
    sync_insiders: bool = False,
    scheduler: SyncScheduler = Depends(get_scheduler)
):
    """Start a historical backfill (BACKFILL_MAX_PAGES, checkpointed)."""
    _ensure_idle(scheduler)
    background_tasks.add_task(scheduler.run_historical_backfill, sync_insiders)
    logger.info("Historical backfill triggered")
    return SyncAcceptedResponse(
        message="Historical backfill started",
        options={"max_pages": settings.BACKFILL_MAX_PAGES, "sync_insiders": sync_insiders, "use_checkpoints": True}
    )


@router.post("/stop")
async def stop_sync(scheduler: SyncScheduler = Depends(get_scheduler)):
    """Ask the running sync to stop at the next record boundary."""
    stopping = scheduler.force_stop()
    return {"stopping": stopping}


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(scheduler: SyncScheduler = Depends(get_scheduler)):
    current = scheduler.get_status()
    return SyncStatusResponse(
        is_running=current["is_running"],
        last_run_time=current["last_run_time"],
        last_result=current["last_result"],
        rate_limits=current.get("rate_limits"),
    )


@router.get("/checkpoints", response_model=List[CheckpointInfo])
async def list_checkpoints(scheduler: SyncScheduler = Depends(get_scheduler)):
    checkpoints = await scheduler.checkpoints.list_all()
    return [CheckpointInfo.model_validate(c) for c in checkpoints]
