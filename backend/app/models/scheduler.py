"""
Pydantic Models for the Scheduler Admin API

Batch job status, manual job runs and the system-wide review metrics shown
on the admin dashboard. All fields serialize as camelCase.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import Field

from app.models.base import CamelResponse


class SchedulerJob(CamelResponse):
    id: str
    name: str
    next_run: Optional[str] = None
    trigger: str


class SchedulerStatus(CamelResponse):
    """State of the in-process batch job scheduler."""

    running: bool
    total_jobs: int
    jobs: list[SchedulerJob] = Field(default_factory=list)


class JobRunResult(CamelResponse):
    """Outcome of a manually triggered job: per-user counts it produced."""

    job_id: str
    executed_at: datetime
    counts: dict[str, int] = Field(default_factory=dict)


class UserActivityCounts(CamelResponse):
    # Users with due items or reviews on the day
    total: int
    # Users with at least one review on the day
    active: int


class ReviewActivityCounts(CamelResponse):
    due: int
    completed: int
    correct: int
    # completed / (completed + still due), 0 when there is no workload
    completion_rate: float
    # correct / completed, 0 when nothing was completed
    accuracy_rate: float


class SystemMetrics(CamelResponse):
    """Review activity across all users for one day key."""

    metrics_day: date = Field(..., alias="date")
    users: UserActivityCounts
    reviews: ReviewActivityCounts
    scheduler: Optional[SchedulerStatus] = None
