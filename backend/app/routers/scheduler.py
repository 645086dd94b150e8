"""
Scheduler Admin Router

Operator endpoints for the in-process batch jobs. These act on the whole
service rather than one learner, so they require the service API key but
no user id header.

Endpoints:
- GET /api/scheduler/status - Running state and configured jobs
- POST /api/scheduler/run/{job_id} - Run a batch job immediately
- GET /api/scheduler/metrics - Review activity across all users
"""

from datetime import date
from typing import Optional
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import get_db
from app.dependencies import verify_review_api_key
from app.middleware.error_handling import handle_endpoint_errors
from app.models.base import ApiResponse
from app.models.scheduler import JobRunResult, SchedulerStatus, SystemMetrics
from app.services.review import ReviewService
from app.services.scheduler import get_scheduler_status, run_job_now

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/scheduler",
    tags=["scheduler"],
    dependencies=[Depends(verify_review_api_key)],
)


@router.get("/status", response_model=ApiResponse[SchedulerStatus])
@handle_endpoint_errors("Get scheduler status")
async def get_status() -> ApiResponse:
    """Get whether the scheduler is running and when each job runs next."""
    return ApiResponse(message="Scheduler status retrieved", data=get_scheduler_status())


@router.post("/run/{job_id}", response_model=ApiResponse[JobRunResult])
@handle_endpoint_errors("Run scheduler job")
async def run_job(job_id: str) -> ApiResponse:
    """
    Run a batch job now and return the counts it produced.

    Known jobs: review_targets, review_reminders. Unknown ids return 404.
    """
    result = await run_job_now(job_id)
    return ApiResponse(message=f"Job {job_id} executed", data=result)


@router.get("/metrics", response_model=ApiResponse[SystemMetrics])
@handle_endpoint_errors("Get system metrics")
async def get_metrics(
    day: Optional[date] = Query(
        None, alias="date", description="Day to report (default: today)"
    ),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse:
    """
    Get review workload and activity across all users.

    Rates are fractions between 0 and 1.
    """
    service = ReviewService(db)
    metrics = await service.system_metrics(day or service.today())
    metrics.scheduler = get_scheduler_status()
    return ApiResponse(message="System metrics retrieved", data=metrics)
