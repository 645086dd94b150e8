"""
Stage Tables

A stage table is the spacing policy of a scheduler: an ordered list of review
intervals (in days) indexed by stage. Tables are versioned so that a stored
due date can always be traced back to the policy that produced it, even after
the intervals in settings change.

Usage:
    from app.services.review.stages import get_item_stage_table

    table = get_item_stage_table()
    table.interval_days(2)  # -> 7 with the default item-v1 table
"""

from dataclasses import dataclass
from typing import Optional

from app.config import settings


@dataclass(frozen=True)
class StageTable:
    """
    Immutable stage → interval lookup.

    Attributes:
        version: Tag stored alongside every scheduled date computed with
            this table.
        intervals: Interval in days for stage 0, 1, 2, ...
        clamp: When True, stages past the end of the table reuse the last
            interval (workbook scheduling). When False, asking for such a
            stage is an error (item scheduling, where the stage after the
            last interval is the terminal "completed" stage).
    """

    version: str
    intervals: tuple[int, ...]
    clamp: bool = False

    def __post_init__(self) -> None:
        if not self.intervals:
            raise ValueError(f"Stage table {self.version!r} has no intervals")
        if any(days < 0 for days in self.intervals):
            raise ValueError(f"Stage table {self.version!r} has a negative interval")

    @property
    def stage_count(self) -> int:
        """Number of stages that carry an interval."""
        return len(self.intervals)

    def interval_days(self, stage: int) -> int:
        """
        Return the review interval for a stage.

        Raises:
            ValueError: If the stage is negative, or past the end of a
                non-clamping table (i.e. the terminal stage).
        """
        if stage < 0:
            raise ValueError(f"Stage must be >= 0, got {stage}")
        if stage >= len(self.intervals):
            if not self.clamp:
                raise ValueError(
                    f"Stage {stage} has no interval in table {self.version!r}"
                )
            return self.intervals[-1]
        return self.intervals[stage]


_REGISTRY: dict[str, StageTable] = {}


def register_stage_table(table: StageTable) -> StageTable:
    """
    Register a table under its version tag.

    Re-registering the same version with different intervals is refused:
    it would silently reinterpret due dates computed under the old policy.
    """
    existing = _REGISTRY.get(table.version)
    if existing is not None and existing != table:
        raise ValueError(
            f"Stage table version {table.version!r} is already registered "
            f"with intervals {existing.intervals}"
        )
    _REGISTRY[table.version] = table
    return table


def get_stage_table(version: str) -> Optional[StageTable]:
    """Look up a registered table by version tag."""
    return _REGISTRY.get(version)


def get_item_stage_table() -> StageTable:
    """Item-level (problem) stage table from settings."""
    return register_stage_table(
        StageTable(
            version=settings.REVIEW_ITEM_TABLE_VERSION,
            intervals=tuple(settings.REVIEW_ITEM_INTERVALS),
            clamp=False,
        )
    )


def get_workbook_stage_table() -> StageTable:
    """Workbook-level (problem set) stage table from settings."""
    return register_stage_table(
        StageTable(
            version=settings.REVIEW_WORKBOOK_TABLE_VERSION,
            intervals=tuple(settings.REVIEW_WORKBOOK_INTERVALS),
            clamp=True,
        )
    )
