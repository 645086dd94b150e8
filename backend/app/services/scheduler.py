"""
Scheduled Job Configuration

Configures the review batch jobs using APScheduler, in the review timezone
(settings.REVIEW_TIMEZONE):
- Review target tally daily at 06:00 (settings.REVIEW_TARGETS_JOB_HOUR)
- Next-day review reminders daily at 21:00 (settings.REVIEW_REMINDER_JOB_HOUR)

Both jobs only read mastery states. Due-ness is always evaluated at request
time, so a missed run never changes what a learner sees.

Execution Context:
    The scheduler runs IN-PROCESS with FastAPI. It is started/stopped via
    FastAPI's lifespan context manager in app/main.py.

    Flow:
        uvicorn starts FastAPI -> lifespan() calls start_scheduler()
        -> APScheduler runs the jobs in the event loop

Limitations:
    - Single instance only: If you scale to multiple backend replicas,
      each replica runs its own scheduler and logs the same tallies.

Usage:
    # Automatic (via FastAPI lifespan in main.py):
    start_scheduler()  # On app startup
    stop_scheduler()   # On app shutdown

    # Manual run (also exposed as POST /api/scheduler/run/{job_id}):
    from app.services.scheduler import run_job_now
    await run_job_now("review_targets")
"""

import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.config import settings, yaml_config
from app.middleware.error_handling import NotFoundError
from app.models.scheduler import JobRunResult, SchedulerJob, SchedulerStatus

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler(timezone=ZoneInfo(settings.REVIEW_TIMEZONE))


async def run_review_targets_job() -> dict[str, int]:
    """Tally today's due review items per user."""
    # Deferred imports: Avoid loading DB and service modules until job execution.
    from app.db.base import async_session_maker
    from app.services.review import ReviewService

    async with async_session_maker() as db:
        service = ReviewService(db)
        today = service.today()
        counts = await service.due_counts_by_user(today)

    logger.info(
        f"Review targets for {today}: {sum(counts.values())} items "
        f"across {len(counts)} users"
    )
    return counts


async def run_review_reminder_job() -> dict[str, int]:
    """Collect users with reviews becoming due tomorrow."""
    from app.db.base import async_session_maker
    from app.services.review import ReviewService

    async with async_session_maker() as db:
        service = ReviewService(db)
        tomorrow = service.today() + timedelta(days=1)
        counts = await service.scheduled_counts_by_user(tomorrow)

    for user_id, count in counts.items():
        logger.info(f"Review reminder: user {user_id} has {count} reviews due {tomorrow}")
    if not counts:
        logger.info(f"No reviews due {tomorrow}, no reminders")
    return counts


def setup_scheduled_jobs() -> None:
    """Configure the review batch jobs."""
    grace = yaml_config.get("scheduler", {}).get("misfire_grace_time", 3600)

    scheduler.add_job(
        run_review_targets_job,
        CronTrigger(hour=settings.REVIEW_TARGETS_JOB_HOUR, minute=0),
        id="review_targets",
        name="Daily Review Targets",
        replace_existing=True,
        misfire_grace_time=grace,
    )

    scheduler.add_job(
        run_review_reminder_job,
        CronTrigger(hour=settings.REVIEW_REMINDER_JOB_HOUR, minute=0),
        id="review_reminders",
        name="Review Reminders",
        replace_existing=True,
        misfire_grace_time=grace,
    )

    logger.info(f"Scheduled jobs configured ({settings.REVIEW_TIMEZONE}):")
    logger.info(f"  - Review targets: daily at {settings.REVIEW_TARGETS_JOB_HOUR:02d}:00")
    logger.info(f"  - Review reminders: daily at {settings.REVIEW_REMINDER_JOB_HOUR:02d}:00")


def start_scheduler() -> None:
    """Start the scheduler and configure jobs."""
    if scheduler.running:
        logger.warning("Scheduler already running")
        return

    setup_scheduled_jobs()
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler() -> None:
    """Stop the scheduler gracefully."""
    if not scheduler.running:
        logger.warning("Scheduler not running")
        return

    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")

# Job ids accepted by run_job_now, mapped to their coroutine functions
JOB_FUNCTIONS: dict[str, Callable[[], Awaitable[dict[str, int]]]] = {
    "review_targets": run_review_targets_job,
    "review_reminders": run_review_reminder_job,
}


def get_scheduled_jobs() -> list[dict]:
    """Get list of scheduled jobs with their next run times."""
    jobs = []
    for job in scheduler.get_jobs():
        # Jobs added before start() are pending and have no next_run_time yet
        next_run_time = getattr(job, "next_run_time", None)
        jobs.append(
            {
                "id": job.id,
                "name": job.name,
                "next_run": next_run_time.isoformat() if next_run_time else None,
                "trigger": str(job.trigger),
            }
        )
    return jobs


def get_scheduler_status() -> SchedulerStatus:
    """Running state plus the configured jobs."""
    jobs = [SchedulerJob(**job) for job in get_scheduled_jobs()]
    return SchedulerStatus(running=scheduler.running, total_jobs=len(jobs), jobs=jobs)


async def run_job_now(job_id: str) -> JobRunResult:
    """
    Run a batch job immediately, outside its schedule.

    The job runs in the caller's task whether or not the scheduler is
    running, so the result reflects this run.

    Args:
        job_id: ID of the job to run

    Returns:
        JobRunResult with the per-user counts the job produced

    Raises:
        NotFoundError: If job_id names no known job
    """
    job_func = JOB_FUNCTIONS.get(job_id)
    if job_func is None:
        raise NotFoundError(
            f"Unknown scheduler job: {job_id}",
            details={"available": sorted(JOB_FUNCTIONS)},
        )

    logger.info(f"Manually running job: {job_id}")
    executed_at = datetime.now(scheduler.timezone)
    counts = await job_func()
    return JobRunResult(job_id=job_id, executed_at=executed_at, counts=counts)
