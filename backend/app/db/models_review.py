"""
SQLAlchemy Database Models for the Review Scheduler

Tables:
- mastery_states: Per (user, problem) mastery stage and next due date
- review_history: Append-only log of item-level review completions
- workbook_review_schedules: Per (user, problem set) review stage and due date
- workbook_review_history: Append-only log of workbook session outcomes

Every state table carries a `version` column wired to SQLAlchemy's
optimistic concurrency check (version_id_col): an UPDATE whose version no
longer matches the row raises StaleDataError instead of overwriting a
concurrent transition.

ARCHITECTURE NOTE:
    This file contains SQLALCHEMY models for database persistence.
    There is a corresponding Pydantic file: app/models/review.py

    Data flows: Service Layer → Pydantic → SQLAlchemy → Database
"""

from datetime import date, datetime, timezone
from typing import Optional
import uuid

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


# ===========================================
# Item-level (problem) review state
# ===========================================


class MasteryRecord(Base):
    """
    Mastery state of one user for one problem.

    Created lazily on first exposure (level 0, due the same day) and mutated
    only by the item scheduler. Never deleted.

    Attributes:
        id: UUID string; the `recordId` used by the review API.
        user_id: Owner, as supplied by the authentication gateway.
        problem_id: Problem being reviewed.
        problem_set_id: Problem set the problem was first seen in. Optional.
        mastery_level: Stage 0-3, or 4 for completed.
        scheduled_date: Day the item is next due. NULL iff completed.
        consecutive_correct: Correct answers in a row (diagnostic only).
        total_attempts: Number of completions applied.
        last_reviewed_at: Timestamp of the last applied completion.
        last_review_date: Day key of the last applied completion.
        stage_table_version: Version of the stage table that produced
            scheduled_date.
        version: Optimistic concurrency counter.
    """

    __tablename__ = "mastery_states"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    problem_id: Mapped[str] = mapped_column(String(64))
    problem_set_id: Mapped[Optional[str]] = mapped_column(String(64))

    # Scheduling state
    mastery_level: Mapped[int] = mapped_column(Integer, default=0)
    scheduled_date: Mapped[Optional[date]] = mapped_column(Date)
    stage_table_version: Mapped[str] = mapped_column(String(32))

    # Audit
    consecutive_correct: Mapped[int] = mapped_column(Integer, default=0)
    total_attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True)
    )
    last_review_date: Mapped[Optional[date]] = mapped_column(Date)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )

    __table_args__ = (
        UniqueConstraint("user_id", "problem_id", name="uq_mastery_states_user_problem"),
        Index("ix_mastery_states_user_scheduled", "user_id", "scheduled_date"),
    )
    __mapper_args__ = {"version_id_col": version}


class ReviewHistory(Base):
    """
    One applied item-level review completion.

    The event log behind daily statistics and idempotent replays. Rows are
    only ever inserted, in the same transaction as the state update they
    describe.

    Attributes:
        mastery_state_id: State the completion was applied to.
        is_correct: Graded outcome.
        time_spent: Seconds spent, if the client measured it.
        confidence_level: Self-reported confidence 1-5. Optional.
        difficulty_perceived: Self-reported difficulty 1-5. Optional.
        occurred_at: Timestamp of the completion.
        review_date: Day key of the completion in the review timezone.
        level_before: Mastery level the transition started from.
        level_after: Mastery level the transition produced.
        scheduled_date_after: Due date the transition produced.
        idempotency_key: Caller-supplied submission id. Unique per state.
    """

    __tablename__ = "review_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    mastery_state_id: Mapped[str] = mapped_column(
        ForeignKey("mastery_states.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[str] = mapped_column(String(64))
    problem_id: Mapped[str] = mapped_column(String(64))

    # Event details
    is_correct: Mapped[bool] = mapped_column(Boolean)
    time_spent: Mapped[Optional[int]] = mapped_column(Integer)
    confidence_level: Mapped[Optional[int]] = mapped_column(Integer)
    difficulty_perceived: Mapped[Optional[int]] = mapped_column(Integer)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    review_date: Mapped[date] = mapped_column(Date)

    # Transition
    level_before: Mapped[int] = mapped_column(Integer)
    level_after: Mapped[int] = mapped_column(Integer)
    scheduled_date_after: Mapped[Optional[date]] = mapped_column(Date)

    idempotency_key: Mapped[Optional[str]] = mapped_column(String(128))

    __table_args__ = (
        UniqueConstraint(
            "mastery_state_id",
            "idempotency_key",
            name="uq_review_history_state_idempotency_key",
        ),
        Index("ix_review_history_user_review_date", "user_id", "review_date"),
    )


# ===========================================
# Workbook-level (problem set) review state
# ===========================================


class WorkbookReviewSchedule(Base):
    """
    Review schedule of one user for one problem set.

    Attributes:
        id: UUID string; the `scheduleId` used by the review API.
        review_stage: Stage >= 0. Stages past the stage table reuse its
            last interval; there is no terminal stage.
        next_review_date: Day the set is next due. Never NULL.
        total_sessions: Number of pass/fail outcomes applied.
        stage_table_version: Version of the table that produced
            next_review_date.
        version: Optimistic concurrency counter.
    """

    __tablename__ = "workbook_review_schedules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    problem_set_id: Mapped[str] = mapped_column(String(64))

    review_stage: Mapped[int] = mapped_column(Integer, default=0)
    next_review_date: Mapped[date] = mapped_column(Date)
    stage_table_version: Mapped[str] = mapped_column(String(32))

    total_sessions: Mapped[int] = mapped_column(Integer, default=0)
    last_reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True)
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "problem_set_id", name="uq_workbook_schedules_user_set"
        ),
        Index("ix_workbook_schedules_user_next", "user_id", "next_review_date"),
    )
    __mapper_args__ = {"version_id_col": version}


class WorkbookReviewHistory(Base):
    """One applied pass/fail outcome of a workbook review session."""

    __tablename__ = "workbook_review_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    schedule_id: Mapped[str] = mapped_column(
        ForeignKey("workbook_review_schedules.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[str] = mapped_column(String(64))
    problem_set_id: Mapped[str] = mapped_column(String(64))

    success: Mapped[bool] = mapped_column(Boolean)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    review_date: Mapped[date] = mapped_column(Date)

    stage_before: Mapped[int] = mapped_column(Integer)
    stage_after: Mapped[int] = mapped_column(Integer)
    next_review_date_after: Mapped[date] = mapped_column(Date)

    idempotency_key: Mapped[Optional[str]] = mapped_column(String(128))

    __table_args__ = (
        UniqueConstraint(
            "schedule_id",
            "idempotency_key",
            name="uq_workbook_history_schedule_idempotency_key",
        ),
    )
