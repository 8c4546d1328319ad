"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health, sync
from core.config import settings
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware
from ingestion.scheduler import SyncScheduler

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Disclosure Sync API",
    description="Ingests congressional and insider trade disclosures from FMP",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

app.include_router(health.router)
app.include_router(sync.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Disclosure Sync API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    if getattr(app.state, "scheduler", None) is None:
        app.state.scheduler = SyncScheduler()

    if settings.SCHEDULER_ENABLED:
        app.state.scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Disclosure Sync API")
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        await scheduler.aclose()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Disclosure Sync API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "sync": "/sync/now",
            "backfill": "/sync/backfill",
            "status": "/sync/status",
            "checkpoints": "/sync/checkpoints"
        }
    }
