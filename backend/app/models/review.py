"""
Pydantic Models for the Review Scheduler API

Request bodies, per-item views and aggregate reports for the review
endpoints.

Field naming follows what the web client already consumes: item views
(mastery states, workbook schedules) are snake_case rows, while summaries,
reports and request bodies are camelCase.

ARCHITECTURE NOTE:
    This file contains PYDANTIC models for API validation.
    There is a corresponding SQLAlchemy file: app/db/models_review.py
"""

from datetime import date, datetime
from typing import Optional

from pydantic import Field, StrictBool

from app.enums.review import MasteryLevel
from app.models.base import CamelRequest, CamelResponse, StrictResponse


# ===========================================
# Item views
# ===========================================


class MasteryStateResponse(StrictResponse):
    """One (user, problem) mastery state, as listed in review queues."""

    id: str
    user_id: str
    problem_id: str
    problem_set_id: Optional[str] = None
    mastery_level: MasteryLevel
    scheduled_date: Optional[date] = None
    consecutive_correct: int = 0
    total_attempts: int = 0
    last_reviewed_at: Optional[datetime] = None
    stage_table_version: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Set only by the priority queue
    overdue_days: Optional[int] = None


class WorkbookScheduleResponse(StrictResponse):
    """One (user, problem set) workbook review schedule."""

    id: str
    user_id: str
    problem_set_id: str
    review_stage: int
    next_review_date: date
    total_sessions: int = 0
    last_reviewed_at: Optional[datetime] = None
    stage_table_version: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ===========================================
# Requests
# ===========================================


class CompleteReviewRequest(CamelRequest):
    """
    Outcome of reviewing one item.

    `submissionId` makes the call idempotent: a repeat with the same id for
    the same record returns the first result without applying it again.
    """

    is_correct: StrictBool
    time_spent: Optional[int] = Field(None, ge=0, description="Seconds spent")
    confidence_level: Optional[int] = Field(None, ge=1, le=5)
    difficulty_perceived: Optional[int] = Field(None, ge=1, le=5)
    submission_id: Optional[str] = Field(None, min_length=1, max_length=128)


class SubmissionRequest(CompleteReviewRequest):
    """A graded answer reported by the submission flow, keyed by problem."""

    problem_id: str = Field(..., min_length=1, max_length=64)
    problem_set_id: Optional[str] = Field(None, min_length=1, max_length=64)


class CompleteWorkbookRequest(CamelRequest):
    """
    Outcome of a workbook review session.

    A session the learner left before attempting every problem is reported
    with attemptedAll=false and leaves the schedule untouched.
    A repeated `submissionId` returns the first result unchanged.
    """

    success: StrictBool
    attempted_all: StrictBool = True
    submission_id: Optional[str] = Field(None, min_length=1, max_length=128)


class EnrollWorkbookRequest(CamelRequest):
    problem_set_id: str = Field(..., min_length=1, max_length=64)


# ===========================================
# Completion results
# ===========================================


class ReviewCompletionResult(CamelResponse):
    """State of an item right after a completion was applied."""

    record_id: str
    mastery_level: MasteryLevel
    next_review_date: Optional[date] = None
    mastery_level_changed: bool
    duplicate: bool = False


class WorkbookCompletionResult(CamelResponse):
    """State of a workbook schedule after a session outcome."""

    schedule_id: str
    review_stage: int
    next_review_date: date
    stage_changed: bool
    # True when the outcome was applied, False for abandoned sessions
    completed: bool
    duplicate: bool = False


# ===========================================
# Progress and statistics
# ===========================================


class MasteryDistribution(CamelResponse):
    level0: int = 0
    level1: int = 0
    level2: int = 0
    level3: int = 0
    completed: int = 0


class ReviewProgress(CamelResponse):
    """Counts for the review home screen."""

    today_total: int
    mastery_distribution: MasteryDistribution
    review_date: date


class MasteryLevelChanges(CamelResponse):
    increased: int = 0
    decreased: int = 0
    unchanged: int = 0


class DailyStats(CamelResponse):
    """Review activity of one day in the review timezone."""

    review_day: date = Field(..., alias="date")
    total_reviews_completed: int
    correct_answers: int
    incorrect_answers: int
    average_time_spent: float
    mastery_level_changes: MasteryLevelChanges


class EfficiencyReport(CamelResponse):
    """Review effectiveness over an inclusive date range."""

    start_date: date
    end_date: date
    total_days: int
    active_days: int
    total_reviews_completed: int
    correct_answers: int
    incorrect_answers: int
    accuracy_rate: float
    average_time_spent: float
    average_reviews_per_active_day: float
    mastery_level_changes: MasteryLevelChanges
    mastery_gain_rate: float
    daily_breakdown: list[DailyStats] = Field(default_factory=list)
