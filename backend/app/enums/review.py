"""
Review Scheduler Enums

Defines the closed set of mastery stages and review outcomes used by the
item-level and workbook-level schedulers.
"""

from enum import Enum


class MasteryLevel(int, Enum):
    """
    Item-level mastery stages.

    State transitions:
    - correct answer: stage + 1 (LEVEL_3 → COMPLETED)
    - incorrect answer: stage - 1, floored at LEVEL_0 (COMPLETED → LEVEL_3)

    COMPLETED is terminal: it has no due date and is never offered for
    review until an incorrect answer regresses it.
    """

    LEVEL_0 = 0  # First exposure, shortest interval
    LEVEL_1 = 1
    LEVEL_2 = 2
    LEVEL_3 = 3
    COMPLETED = 4  # Mastered, no further scheduling

    @property
    def is_completed(self) -> bool:
        return self is MasteryLevel.COMPLETED


class ReviewOutcome(str, Enum):
    """Graded outcome of a single review answer."""

    CORRECT = "correct"
    INCORRECT = "incorrect"

    @classmethod
    def from_bool(cls, is_correct: bool) -> "ReviewOutcome":
        return cls.CORRECT if is_correct else cls.INCORRECT


class WorkbookSessionOutcome(str, Enum):
    """
    Outcome of one pass through a problem set.

    Only PASSED and FAILED move the review stage. ABANDONED (the learner
    left mid-set) leaves the schedule untouched.
    """

    PASSED = "passed"  # Whole set attempted, zero incorrect answers
    FAILED = "failed"  # Whole set attempted, at least one incorrect answer
    ABANDONED = "abandoned"  # Set not attempted end-to-end


class MasteryChange(str, Enum):
    """Direction of a stage change, used by daily statistics."""

    INCREASED = "increased"
    DECREASED = "decreased"
    UNCHANGED = "unchanged"
