"""
Health check endpoint with database and checkpoint status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from api.dependencies import get_db
from schemas.api import HealthCheckResponse, CheckpointInfo
from models.base import SyncStatus
from models.checkpoint import SyncCheckpoint
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Checkpoint status for every sync type
    """
    db_connected = False
    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database connection failed: {e}")

    checkpoints = []
    failed_sources = 0
    if db_connected:
        try:
            result = await db.execute(select(SyncCheckpoint).order_by(SyncCheckpoint.id))
            for checkpoint in result.scalars().all():
                if checkpoint.status == SyncStatus.FAILED:
                    failed_sources += 1
                checkpoints.append(CheckpointInfo.model_validate(checkpoint))
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch sync checkpoints: {e}")

    return HealthCheckResponse(
        database_connected=db_connected,
        checkpoints=checkpoints,
        total_sources=len(checkpoints),
        failed_sources=failed_sources
    )
