"""
Staged Review Scheduler

One transition rule shared by item-level (problem) and workbook-level
(problem set) review scheduling:

    success → stage + 1 (capped at the terminal stage, if any)
    failure → stage - 1 (floored at 0)
    next due date = review day + interval(new stage)

The item scheduler has a terminal "completed" stage with no due date; the
workbook scheduler has none and keeps spacing at the table's last interval.

Transitions are pure: they take the current stage and return a
StageTransition. Loading and persisting state is the service layer's job.

Usage:
    from app.services.review.staged_scheduler import create_item_scheduler

    scheduler = create_item_scheduler()
    transition = scheduler.apply(stage=1, succeeded=True, today=date.today())
    transition.stage_after  # -> 2
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Generic, Hashable, Optional, TypeVar

from app.enums.review import MasteryChange, MasteryLevel
from app.middleware.error_handling import InvariantViolationError
from app.services.review.stages import (
    StageTable,
    get_item_stage_table,
    get_workbook_stage_table,
)

logger = logging.getLogger(__name__)

KeyT = TypeVar("KeyT", bound=Hashable)


@dataclass(frozen=True)
class StageTransition:
    """Result of applying one outcome to one stage."""

    stage_before: int
    stage_after: int
    due_date: Optional[date]  # None only for the terminal stage
    reviewed_on: date
    table_version: str

    @property
    def changed(self) -> bool:
        return self.stage_after != self.stage_before

    @property
    def change(self) -> MasteryChange:
        if self.stage_after > self.stage_before:
            return MasteryChange.INCREASED
        if self.stage_after < self.stage_before:
            return MasteryChange.DECREASED
        return MasteryChange.UNCHANGED


class StagedScheduler(Generic[KeyT]):
    """
    Stage-based spaced repetition scheduler.

    The key type parameter names what is being scheduled (a problem id or a
    problem set id); it is used for logging only, transitions depend on the
    stage alone.

    Attributes:
        name: Label used in log messages.
        table: Stage table defining the spacing policy.
        terminal_stage: Stage with no due date, or None for open-ended
            scheduling.
    """

    def __init__(
        self,
        name: str,
        table: StageTable,
        terminal_stage: Optional[int] = None,
    ):
        if terminal_stage is not None and terminal_stage != table.stage_count:
            raise ValueError(
                f"Terminal stage {terminal_stage} must follow the last interval "
                f"of table {table.version!r} ({table.stage_count} stages)"
            )
        self.name = name
        self.table = table
        self.terminal_stage = terminal_stage

    def is_terminal(self, stage: int) -> bool:
        return self.terminal_stage is not None and stage == self.terminal_stage

    def validate_stage(self, stage: int) -> int:
        """
        Check a stored stage before a transition uses it.

        Out-of-range stages mean an upstream write went wrong; they are
        reported, never clamped.
        """
        upper = self.terminal_stage
        if stage < 0 or (upper is not None and stage > upper):
            raise InvariantViolationError(
                f"{self.name}: stage {stage} is outside the valid range",
                details={"stage": stage, "max_stage": upper},
            )
        return stage

    def initial_due_date(self, today: date) -> date:
        """New items start at stage 0 and are due immediately."""
        return today

    def due_date_for(self, stage: int, today: date) -> Optional[date]:
        if self.is_terminal(stage):
            return None
        return today + timedelta(days=self.table.interval_days(stage))

    def apply(
        self,
        stage: int,
        succeeded: bool,
        today: date,
        key: Optional[KeyT] = None,
    ) -> StageTransition:
        """
        Apply one outcome to a stage.

        Args:
            stage: Current stage.
            succeeded: True for a correct answer / passed session.
            today: Day key of the review; the due date is computed from it.
            key: Optional identifier of the scheduled thing, for logging.

        Returns:
            StageTransition with the new stage and due date.

        Raises:
            InvariantViolationError: If the stored stage is out of range.
        """
        self.validate_stage(stage)

        if succeeded:
            new_stage = stage + 1
            if self.terminal_stage is not None:
                new_stage = min(new_stage, self.terminal_stage)
        else:
            new_stage = max(stage - 1, 0)

        transition = StageTransition(
            stage_before=stage,
            stage_after=new_stage,
            due_date=self.due_date_for(new_stage, today),
            reviewed_on=today,
            table_version=self.table.version,
        )

        logger.debug(
            f"{self.name} {key!r}: stage {stage} -> {new_stage} "
            f"({'success' if succeeded else 'failure'}), due {transition.due_date}"
        )
        return transition


def create_item_scheduler(table: Optional[StageTable] = None) -> StagedScheduler[str]:
    """Problem-level scheduler: stages 0..3 plus terminal COMPLETED."""
    table = table or get_item_stage_table()
    if table.stage_count != MasteryLevel.COMPLETED.value:
        raise ValueError(
            f"Item stage table needs {MasteryLevel.COMPLETED.value} intervals, "
            f"got {table.stage_count}"
        )
    return StagedScheduler(
        name="item",
        table=table,
        terminal_stage=MasteryLevel.COMPLETED.value,
    )


def create_workbook_scheduler(
    table: Optional[StageTable] = None,
) -> StagedScheduler[str]:
    """Problem-set-level scheduler: open-ended stages, no terminal stage."""
    return StagedScheduler(
        name="workbook",
        table=table or get_workbook_stage_table(),
        terminal_stage=None,
    )
