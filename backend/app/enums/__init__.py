"""
Centralized enum definitions for the application.

All enums are organized by domain:
- review.py: Mastery levels, review outcomes, workbook session outcomes

Usage:
    from app.enums import MasteryLevel, ReviewOutcome

    # Or import from specific module
    from app.enums.review import WorkbookSessionOutcome
"""

from app.enums.review import (
    MasteryChange,
    MasteryLevel,
    ReviewOutcome,
    WorkbookSessionOutcome,
)

__all__ = [
    "MasteryChange",
    "MasteryLevel",
    "ReviewOutcome",
    "WorkbookSessionOutcome",
]
