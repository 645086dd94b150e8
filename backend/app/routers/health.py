"""
Health Check Endpoints

Provides health check endpoints for monitoring and orchestration.

Endpoints:
- GET /api/health - Basic health check
- GET /api/health/detailed - Detailed health with dependency checks
- GET /api/health/ready - Readiness probe for orchestration systems
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.base import get_db
from app.services.scheduler import get_scheduled_jobs, scheduler

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health_check():
    """
    Basic health check.

    Returns a simple status response indicating the API is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
    }


@router.get("/detailed")
async def detailed_health_check(db: AsyncSession = Depends(get_db)):
    """
    Detailed health check with dependency status.

    Checks:
    - Database connectivity
    - Batch job scheduler state and next run times
    """
    health = {"status": "healthy", "service": settings.APP_NAME, "dependencies": {}}

    # Check database
    try:
        await db.execute(text("SELECT 1"))
        health["dependencies"]["database"] = {"status": "healthy"}
    except SQLAlchemyError as e:
        health["dependencies"]["database"] = {"status": "unhealthy", "error": str(e)}
        health["status"] = "degraded"

    # Scheduler is optional; disabled is not a failure
    if not settings.SCHEDULER_ENABLED:
        health["dependencies"]["scheduler"] = {"status": "disabled"}
    elif scheduler.running:
        health["dependencies"]["scheduler"] = {
            "status": "healthy",
            "jobs": get_scheduled_jobs(),
        }
    else:
        health["dependencies"]["scheduler"] = {
            "status": "unhealthy",
            "error": "Scheduler not running",
        }
        health["status"] = "degraded"

    return health


@router.get("/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """
    Readiness probe for orchestration systems.

    Returns ready only if the database answers.
    """
    try:
        await db.execute(text("SELECT 1"))
        return {"ready": True}
    except SQLAlchemyError as e:
        return {"ready": False, "error": str(e)}
