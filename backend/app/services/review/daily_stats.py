"""
Daily Review Statistics

Rolls review completion events up into per-day summaries and date-range
efficiency reports. Everything here is a pure function of the events passed
in: no counters are kept between calls, so the stats of any past day can be
recomputed at any time (for instance after a backfill) and come out the same.

Level changes are classified from the level *before* each event using the
item scheduler's own rule, not from stored deltas:

    correct   at level < 4  → increased
    correct   at level 4    → unchanged (cannot rise past completed)
    incorrect at level > 0  → decreased
    incorrect at level 0    → unchanged (floor)
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional, Protocol

from app.enums.review import MasteryChange, MasteryLevel


class ReviewEvent(Protocol):
    review_date: date
    is_correct: bool
    time_spent: Optional[int]
    level_before: int


def classify_change(level_before: int, is_correct: bool) -> MasteryChange:
    """Direction the item scheduler moves a stage for this outcome."""
    if is_correct:
        if level_before >= MasteryLevel.COMPLETED:
            return MasteryChange.UNCHANGED
        return MasteryChange.INCREASED
    if level_before <= MasteryLevel.LEVEL_0:
        return MasteryChange.UNCHANGED
    return MasteryChange.DECREASED


@dataclass
class DailyTally:
    """
    Running totals for one day.

    Keeps the sum and count of timed events separately so that averages over
    several days can be weighted correctly.
    """

    day: date
    correct: int = 0
    incorrect: int = 0
    timed_events: int = 0
    total_time_spent: int = 0
    changes: dict[MasteryChange, int] = field(
        default_factory=lambda: {change: 0 for change in MasteryChange}
    )

    @property
    def total(self) -> int:
        return self.correct + self.incorrect

    @property
    def average_time_spent(self) -> float:
        if not self.timed_events:
            return 0.0
        return self.total_time_spent / self.timed_events

    def add(self, event: ReviewEvent) -> None:
        if event.is_correct:
            self.correct += 1
        else:
            self.incorrect += 1

        # Missing time is unknown, not zero
        if event.time_spent is not None:
            self.timed_events += 1
            self.total_time_spent += event.time_spent

        self.changes[classify_change(event.level_before, event.is_correct)] += 1

    def merge(self, other: "DailyTally") -> None:
        self.correct += other.correct
        self.incorrect += other.incorrect
        self.timed_events += other.timed_events
        self.total_time_spent += other.total_time_spent
        for change, count in other.changes.items():
            self.changes[change] += count

    def to_dict(self) -> dict:
        """Daily stats payload in the API's field naming."""
        return {
            "date": self.day,
            "totalReviewsCompleted": self.total,
            "correctAnswers": self.correct,
            "incorrectAnswers": self.incorrect,
            "averageTimeSpent": round(self.average_time_spent, 2),
            "masteryLevelChanges": {
                change.value: count for change, count in self.changes.items()
            },
        }


def aggregate_day(events: Iterable[ReviewEvent], day: date) -> DailyTally:
    """Tally the events whose day key is `day`; other events are ignored."""
    tally = DailyTally(day=day)
    for event in events:
        if event.review_date == day:
            tally.add(event)
    return tally


def aggregate_by_day(events: Iterable[ReviewEvent]) -> dict[date, DailyTally]:
    """Tally events per day key, for days that have at least one event."""
    tallies: dict[date, DailyTally] = {}
    for event in events:
        tally = tallies.get(event.review_date)
        if tally is None:
            tally = tallies[event.review_date] = DailyTally(day=event.review_date)
        tally.add(event)
    return dict(sorted(tallies.items()))


def efficiency_report(
    events: Iterable[ReviewEvent],
    start_date: date,
    end_date: date,
) -> dict:
    """
    Summarize review effectiveness over an inclusive date range.

    Only events inside the range count. The report is derived entirely from
    the per-day tallies, so it always agrees with the daily stats of the
    same days.

    Raises:
        ValueError: If start_date is after end_date.
    """
    if start_date > end_date:
        raise ValueError(f"start_date {start_date} is after end_date {end_date}")

    in_range = (e for e in events if start_date <= e.review_date <= end_date)
    by_day = aggregate_by_day(in_range)

    overall = DailyTally(day=start_date)
    for tally in by_day.values():
        overall.merge(tally)

    total_days = (end_date - start_date).days + 1
    active_days = len(by_day)
    total = overall.total

    return {
        "startDate": start_date,
        "endDate": end_date,
        "totalDays": total_days,
        "activeDays": active_days,
        "totalReviewsCompleted": total,
        "correctAnswers": overall.correct,
        "incorrectAnswers": overall.incorrect,
        "accuracyRate": round(overall.correct / total, 4) if total else 0.0,
        "averageTimeSpent": round(overall.average_time_spent, 2),
        "averageReviewsPerActiveDay": (
            round(total / active_days, 2) if active_days else 0.0
        ),
        "masteryLevelChanges": {
            change.value: count for change, count in overall.changes.items()
        },
        "masteryGainRate": (
            round(overall.changes[MasteryChange.INCREASED] / total, 4)
            if total
            else 0.0
        ),
        "dailyBreakdown": [tally.to_dict() for tally in by_day.values()],
    }
