"""
Mastery Tracker

Pure item-level state transitions on immutable snapshots of a mastery
state. The service layer loads a row into a MasteryStateSnapshot, calls
apply_completion(), and writes the returned snapshot back; nothing here
touches the database.

State invariants checked on every snapshot taken from storage:
- mastery_level is within 0..4
- scheduled_date is NULL exactly when mastery_level is 4 (completed)
"""

import dataclasses
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from app.enums.review import MasteryLevel
from app.middleware.error_handling import InvariantViolationError
from app.services.review.staged_scheduler import (
    StagedScheduler,
    StageTransition,
    create_item_scheduler,
)


@dataclass(frozen=True)
class MasteryStateSnapshot:
    """Scheduling-relevant fields of one mastery state."""

    user_id: str
    problem_id: str
    mastery_level: int
    scheduled_date: Optional[date]
    consecutive_correct: int = 0
    total_attempts: int = 0
    last_reviewed_at: Optional[datetime] = None
    last_review_date: Optional[date] = None
    stage_table_version: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.mastery_level == MasteryLevel.COMPLETED

    @classmethod
    def from_record(cls, record) -> "MasteryStateSnapshot":
        """
        Snapshot a stored row, checking the state invariants.

        Raises:
            InvariantViolationError: If the stored state is inconsistent.
        """
        snapshot = cls(
            user_id=record.user_id,
            problem_id=record.problem_id,
            mastery_level=record.mastery_level,
            scheduled_date=record.scheduled_date,
            consecutive_correct=record.consecutive_correct or 0,
            total_attempts=record.total_attempts or 0,
            last_reviewed_at=record.last_reviewed_at,
            last_review_date=record.last_review_date,
            stage_table_version=record.stage_table_version,
        )
        snapshot.check_invariants(record_id=getattr(record, "id", None))
        return snapshot

    def check_invariants(self, record_id: Optional[str] = None) -> None:
        details = {
            "record_id": record_id,
            "problem_id": self.problem_id,
            "mastery_level": self.mastery_level,
            "scheduled_date": self.scheduled_date,
        }
        if not (
            MasteryLevel.LEVEL_0 <= self.mastery_level <= MasteryLevel.COMPLETED
        ):
            raise InvariantViolationError(
                f"Mastery level {self.mastery_level} is outside 0..4",
                details=details,
            )
        if self.is_completed != (self.scheduled_date is None):
            raise InvariantViolationError(
                "Scheduled date must be empty exactly when the item is completed",
                details=details,
            )

    def apply_to(self, record) -> None:
        """Copy the snapshot's mutable fields onto a stored row."""
        record.mastery_level = self.mastery_level
        record.scheduled_date = self.scheduled_date
        record.consecutive_correct = self.consecutive_correct
        record.total_attempts = self.total_attempts
        record.last_reviewed_at = self.last_reviewed_at
        record.last_review_date = self.last_review_date
        record.stage_table_version = self.stage_table_version


def apply_completion(
    state: MasteryStateSnapshot,
    is_correct: bool,
    today: date,
    reviewed_at: Optional[datetime] = None,
    scheduler: Optional[StagedScheduler] = None,
) -> tuple[MasteryStateSnapshot, StageTransition]:
    """
    Apply one graded review to a mastery state.

    Args:
        state: Current state.
        is_correct: Graded outcome.
        today: Day key of the review; the next due date counts from it.
        reviewed_at: Timestamp recorded as last_reviewed_at.
        scheduler: Item scheduler; defaults to the configured stage table.

    Returns:
        (new state, transition). The input snapshot is left unchanged.

    Raises:
        InvariantViolationError: If the input state is inconsistent.
    """
    scheduler = scheduler or create_item_scheduler()
    state.check_invariants()

    transition = scheduler.apply(
        stage=state.mastery_level,
        succeeded=is_correct,
        today=today,
        key=state.problem_id,
    )

    new_state = dataclasses.replace(
        state,
        mastery_level=transition.stage_after,
        scheduled_date=transition.due_date,
        consecutive_correct=state.consecutive_correct + 1 if is_correct else 0,
        total_attempts=state.total_attempts + 1,
        last_reviewed_at=reviewed_at or state.last_reviewed_at,
        last_review_date=today,
        stage_table_version=transition.table_version,
    )
    return new_state, transition
