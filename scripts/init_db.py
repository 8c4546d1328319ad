"""
Create tables and seed one checkpoint row per sync type
"""

import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import build_engine, build_session_factory
from core.logging import setup_logging
from ingestion.checkpoint import CheckpointStore
from models import Base, SyncType

logger = logging.getLogger(__name__)


async def init_database(url: str = None):
    logger.info("Connecting to database...")
    engine = build_engine(url)

    try:
        async with engine.begin() as conn:
            logger.info("Creating tables...")
            await conn.run_sync(Base.metadata.create_all)
            logger.info("Tables created successfully.")

        session_factory = build_session_factory(engine)
        await CheckpointStore(session_factory).ensure(list(SyncType))
        logger.info("Checkpoint rows ready: " + ", ".join(t.value for t in SyncType))
    finally:
        await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(init_database())
