"""
Review Scheduling Services

Stage-based spaced repetition for problems and problem sets.

Modules:
- stages: Versioned review interval tables
- staged_scheduler: Generic stage transition rule (item and workbook instances)
- tracker: Pure item-level state transitions on snapshots
- ranking: Due ordering, priority ranking, pagination, level distribution
- daily_stats: Daily and date-range statistics from review events
- concurrency: Per-key write locks and version conflict retries
- review_service: Item-level persistence, queues and statistics
- workbook_service: Problem-set level schedules

Usage:
    from app.services.review import ReviewService, WorkbookReviewService
"""

from app.services.review.stages import (
    StageTable,
    get_item_stage_table,
    get_stage_table,
    get_workbook_stage_table,
    register_stage_table,
)
from app.services.review.staged_scheduler import (
    StagedScheduler,
    StageTransition,
    create_item_scheduler,
    create_workbook_scheduler,
)
from app.services.review.tracker import MasteryStateSnapshot, apply_completion
from app.services.review.ranking import (
    Page,
    RankedItem,
    mastery_distribution,
    order_due,
    paginate,
    rank_by_priority,
)
from app.services.review.daily_stats import (
    DailyTally,
    aggregate_by_day,
    aggregate_day,
    efficiency_report,
)
from app.services.review.concurrency import KeyedLock, run_with_conflict_retry
from app.services.review.review_service import ReviewService
from app.services.review.workbook_service import WorkbookReviewService

__all__ = [
    # Stage tables
    "StageTable",
    "get_item_stage_table",
    "get_stage_table",
    "get_workbook_stage_table",
    "register_stage_table",
    # Transitions
    "StagedScheduler",
    "StageTransition",
    "create_item_scheduler",
    "create_workbook_scheduler",
    "MasteryStateSnapshot",
    "apply_completion",
    # Queues
    "Page",
    "RankedItem",
    "mastery_distribution",
    "order_due",
    "paginate",
    "rank_by_priority",
    # Statistics
    "DailyTally",
    "aggregate_by_day",
    "aggregate_day",
    "efficiency_report",
    # Concurrency
    "KeyedLock",
    "run_with_conflict_retry",
    # Services
    "ReviewService",
    "WorkbookReviewService",
]
