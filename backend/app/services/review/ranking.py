"""
Review Queue Ordering

Pure ordering, filtering and pagination over due items. Two orderings exist
on purpose:

- order_due(): temporal and stable (scheduled date, then problem id), for
  the day-to-day "today's review" list that the UI paginates and re-renders.
- rank_by_priority(): urgency-weighted (most overdue first, then least
  mastered), for remediation and catch-up flows.

Both work on any object exposing `problem_id`, `mastery_level` and
`scheduled_date`, so they run unchanged on ORM rows and on test fixtures.
"""

from dataclasses import dataclass
from datetime import date
from math import ceil
from typing import Generic, Iterable, Optional, Protocol, Sequence, TypeVar

from app.enums.review import MasteryLevel


class DueItem(Protocol):
    problem_id: str
    mastery_level: int
    scheduled_date: Optional[date]


ItemT = TypeVar("ItemT")
DueItemT = TypeVar("DueItemT", bound=DueItem)


@dataclass(frozen=True)
class Page(Generic[ItemT]):
    """One page of an ordered result plus the size of the whole result."""

    items: list[ItemT]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return ceil(self.total / self.page_size) if self.page_size else 0


@dataclass(frozen=True)
class RankedItem(Generic[DueItemT]):
    """A due item together with how many days it is overdue."""

    item: DueItemT
    overdue_days: int


def paginate(items: Sequence[ItemT], page: int, page_size: int) -> Page[ItemT]:
    """Slice an already ordered sequence; pages are 1-based."""
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")
    start = (page - 1) * page_size
    return Page(
        items=list(items[start : start + page_size]),
        total=len(items),
        page=page,
        page_size=page_size,
    )


def is_due(item: DueItem, as_of: date) -> bool:
    """Non-completed and scheduled on or before as_of."""
    return (
        item.mastery_level != MasteryLevel.COMPLETED
        and item.scheduled_date is not None
        and item.scheduled_date <= as_of
    )


def overdue_days(item: DueItem, as_of: date) -> int:
    """Whole days past the scheduled date, never negative."""
    if item.scheduled_date is None:
        return 0
    return max(0, (as_of - item.scheduled_date).days)


def order_due(items: Iterable[DueItemT], as_of: date) -> list[DueItemT]:
    """Due items ordered by scheduled date, then problem id."""
    due = [item for item in items if is_due(item, as_of)]
    due.sort(key=lambda item: (item.scheduled_date, item.problem_id))
    return due


def rank_by_priority(
    items: Iterable[DueItemT],
    as_of: date,
    max_overdue_days: Optional[int] = None,
) -> list[RankedItem[DueItemT]]:
    """
    Due items ordered by urgency.

    Order: overdue days descending, mastery level ascending, problem id
    ascending. With max_overdue_days set, items overdue by more than the cap
    are left out entirely.

    Raises:
        ValueError: If max_overdue_days is negative.
    """
    if max_overdue_days is not None and max_overdue_days < 0:
        raise ValueError(f"max_overdue_days must be >= 0, got {max_overdue_days}")

    ranked = []
    for item in items:
        if not is_due(item, as_of):
            continue
        days = overdue_days(item, as_of)
        if max_overdue_days is not None and days > max_overdue_days:
            continue
        ranked.append(RankedItem(item=item, overdue_days=days))

    ranked.sort(key=lambda r: (-r.overdue_days, r.item.mastery_level, r.item.problem_id))
    return ranked


def mastery_distribution(
    due_items: Iterable[DueItem],
    completed_count: int = 0,
) -> dict[str, int]:
    """
    Count due items per mastery level for the progress view.

    Completed items are never due, so their count comes from the caller
    (items completed on the review day).
    """
    distribution = {f"level{level.value}": 0 for level in MasteryLevel if not level.is_completed}
    for item in due_items:
        distribution[f"level{MasteryLevel(item.mastery_level).value}"] += 1
    distribution["completed"] = completed_count
    return distribution
