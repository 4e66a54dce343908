"""Health check endpoints for the API and the polling scheduler."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from wishwatch.core.database import get_db
from wishwatch.scheduler.lock import build_scheduler_lock
from wishwatch.services import StreamerService
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "wishwatch"}


@router.get("/health/db")
async def check_database_health(db: AsyncSession = Depends(get_db)):
    """Database connectivity check."""
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "healthy"}
    except Exception as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return {
            "status": "unhealthy",
            "error": str(e),
            "error_type": type(e).__name__
        }


@router.get("/health/scheduler")
async def check_scheduler_health(db: AsyncSession = Depends(get_db)):
    """
    Report which instance holds the scheduler lock.

    Example response:
    {
        "status": "healthy",
        "lock": {"instance_id": "host-123-ab12cd34", "heartbeat_age_seconds": 4.2, ...},
        "tracked_streamers": 12
    }

    Status is "no_holder" when nobody holds the lock and "stale" when the
    holder stopped renewing its heartbeat.
    """
    try:
        lock = await build_scheduler_lock().describe()
        tracked = await StreamerService.get_tracked_streamers(db)
    except Exception as e:
        logger.error(f"Scheduler health check failed: {e}", exc_info=True)
        return {
            "status": "unhealthy",
            "error": str(e),
            "error_type": type(e).__name__
        }

    if lock is None:
        status = "no_holder"
    elif lock["stale"]:
        status = "stale"
    else:
        status = "healthy"

    return {
        "status": status,
        "lock": lock,
        "tracked_streamers": len(tracked)
    }
