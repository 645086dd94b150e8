"""
Review Service

Service layer that connects the item-level staged scheduler to the
database. Handles lazy enrollment, completion processing (serialized per
record, idempotent per submission id), due and priority queues, progress
counts, and review statistics.

Usage:
    from app.services.review import ReviewService

    service = ReviewService(db_session)

    # Today's queue
    page = await service.get_due(user_id, as_of=service.today(), page=1, page_size=20)

    # Apply a graded review
    result = await service.complete_review(
        user_id,
        record_id,
        CompleteReviewRequest(is_correct=True, time_spent=42),
    )
"""

import dataclasses
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.config.settings import settings
from app.db.models_review import MasteryRecord, ReviewHistory
from app.enums.review import MasteryLevel, ReviewOutcome
from app.middleware.error_handling import InvalidInputError, NotFoundError
from app.models.review import (
    CompleteReviewRequest,
    DailyStats,
    EfficiencyReport,
    MasteryDistribution,
    MasteryStateResponse,
    ReviewCompletionResult,
    ReviewProgress,
    SubmissionRequest,
)
from app.models.scheduler import (
    ReviewActivityCounts,
    SystemMetrics,
    UserActivityCounts,
)
from app.services.review.concurrency import mastery_locks, run_with_conflict_retry
from app.services.review.daily_stats import aggregate_day, efficiency_report
from app.services.review.ranking import (
    Page,
    mastery_distribution,
    order_due,
    paginate,
    rank_by_priority,
)
from app.services.review.staged_scheduler import StagedScheduler, create_item_scheduler
from app.services.review.tracker import MasteryStateSnapshot, apply_completion

logger = logging.getLogger(__name__)


class ReviewService:
    """
    Service for item-level (per problem) review scheduling.

    Provides:
    - Lazy creation of mastery states on first exposure
    - Completion processing with per-record serialization and idempotency
    - Due queue, priority queue and progress distribution
    - Daily statistics and efficiency reports from the review history
    """

    def __init__(
        self,
        db: AsyncSession,
        scheduler: Optional[StagedScheduler] = None,
        tz: Optional[str] = None,
    ):
        """
        Initialize the review service.

        Args:
            db: Async database session
            scheduler: Item scheduler (defaults to the configured stage table)
            tz: Timezone that defines day keys
                (defaults to settings.REVIEW_TIMEZONE)
        """
        self.db = db
        self.scheduler = scheduler or create_item_scheduler()
        self.tz = ZoneInfo(tz or settings.REVIEW_TIMEZONE)

    def today(self, now: Optional[datetime] = None) -> date:
        """Day key of `now` (default: current time) in the review timezone."""
        now = now or datetime.now(timezone.utc)
        return now.astimezone(self.tz).date()

    # ===========================================
    # Enrollment
    # ===========================================

    async def ensure_mastery_state(
        self,
        user_id: str,
        problem_id: str,
        problem_set_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> MasteryRecord:
        """
        Return the user's mastery state for a problem, creating it if needed.

        New states start at level 0 and are due on `today`.
        """
        record = await self._find_state(user_id, problem_id)
        if record is not None:
            return record

        today = today or self.today()
        record = MasteryRecord(
            user_id=user_id,
            problem_id=problem_id,
            problem_set_id=problem_set_id,
            mastery_level=MasteryLevel.LEVEL_0.value,
            scheduled_date=self.scheduler.initial_due_date(today),
            stage_table_version=self.scheduler.table.version,
            consecutive_correct=0,
            total_attempts=0,
        )
        self.db.add(record)
        try:
            await self.db.commit()
        except IntegrityError:
            # Another request enrolled the same problem first
            await self.db.rollback()
            record = await self._find_state(user_id, problem_id)
            if record is None:
                raise
            return record

        await self.db.refresh(record)
        logger.info(f"Enrolled problem {problem_id} for user {user_id} (record {record.id})")
        return record

    async def record_submission(
        self,
        user_id: str,
        request: SubmissionRequest,
        now: Optional[datetime] = None,
    ) -> ReviewCompletionResult:
        """
        Entry point for the solution-recording flow.

        Enrolls the problem on first exposure, then applies the graded
        answer exactly like complete_review().
        """
        now = now or datetime.now(timezone.utc)
        record = await self.ensure_mastery_state(
            user_id,
            request.problem_id,
            problem_set_id=request.problem_set_id,
            today=self.today(now),
        )
        completion = CompleteReviewRequest(
            **request.model_dump(exclude={"problem_id", "problem_set_id"})
        )
        return await self.complete_review(user_id, record.id, completion, now=now)

    # ===========================================
    # Completion
    # ===========================================

    async def complete_review(
        self,
        user_id: str,
        record_id: str,
        request: CompleteReviewRequest,
        now: Optional[datetime] = None,
    ) -> ReviewCompletionResult:
        """
        Apply one graded review to a mastery state.

        Completions for the same record run one at a time in arrival order.
        With a submission id, a repeat of an already applied submission
        returns the stored result with duplicate=True and changes nothing.

        Args:
            user_id: Caller; must own the record
            record_id: Mastery state id
            request: Outcome and optional timing/self-assessment
            now: Completion timestamp (defaults to current time)

        Returns:
            Resulting mastery level and next review date

        Raises:
            NotFoundError: Record missing or owned by another user
            ConflictError: Concurrent writers kept winning the version check
            InvariantViolationError: Stored state is inconsistent
        """
        now = now or datetime.now(timezone.utc)

        async with mastery_locks.hold(record_id):
            return await run_with_conflict_retry(
                lambda: self._apply_completion_once(user_id, record_id, request, now),
                description=f"complete review of record {record_id}",
            )

    async def _apply_completion_once(
        self,
        user_id: str,
        record_id: str,
        request: CompleteReviewRequest,
        now: datetime,
    ) -> ReviewCompletionResult:
        record = await self._get_owned_state(user_id, record_id)

        if request.submission_id:
            previous = await self._find_history(record.id, request.submission_id)
            if previous is not None:
                logger.warning(
                    f"Duplicate submission {request.submission_id} for record {record_id}"
                )
                return self._result_from_history(previous)

        today = self.today(now)
        before = MasteryStateSnapshot.from_record(record)
        after, transition = apply_completion(
            before,
            request.is_correct,
            today,
            reviewed_at=now,
            scheduler=self.scheduler,
        )

        after.apply_to(record)
        self.db.add(
            ReviewHistory(
                mastery_state_id=record.id,
                user_id=user_id,
                problem_id=record.problem_id,
                is_correct=request.is_correct,
                time_spent=request.time_spent,
                confidence_level=request.confidence_level,
                difficulty_perceived=request.difficulty_perceived,
                occurred_at=now,
                review_date=today,
                level_before=transition.stage_before,
                level_after=transition.stage_after,
                scheduled_date_after=transition.due_date,
                idempotency_key=request.submission_id,
            )
        )

        try:
            await self.db.commit()
        except StaleDataError:
            await self.db.rollback()
            logger.warning(f"Version conflict on record {record_id}, re-reading")
            raise
        except IntegrityError:
            await self.db.rollback()
            if request.submission_id:
                previous = await self._find_history(record_id, request.submission_id)
                if previous is not None:
                    logger.warning(
                        f"Duplicate submission {request.submission_id} "
                        f"for record {record_id} (insert race)"
                    )
                    return self._result_from_history(previous)
            raise

        logger.info(
            f"Review applied: record={record_id} problem={after.problem_id} "
            f"({ReviewOutcome.from_bool(request.is_correct).value}) "
            f"level {transition.stage_before} -> {transition.stage_after}, "
            f"next review {transition.due_date}"
        )

        return ReviewCompletionResult(
            record_id=record_id,
            mastery_level=transition.stage_after,
            next_review_date=transition.due_date,
            mastery_level_changed=transition.changed,
            duplicate=False,
        )

    # ===========================================
    # Queues
    # ===========================================

    async def get_due(
        self,
        user_id: str,
        as_of: date,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Page[MasteryStateResponse]:
        """
        Items due on or before `as_of`, oldest due date first.

        Ties on the due date are broken by problem id so that page
        boundaries stay stable across requests.
        """
        page_size = page_size or settings.REVIEW_DEFAULT_PAGE_SIZE
        records = await self._load_due_states(user_id, as_of)

        result = paginate(order_due(records, as_of), page, page_size)
        return dataclasses.replace(
            result, items=[self._to_response(record) for record in result.items]
        )

    async def get_by_priority(
        self,
        user_id: str,
        as_of: date,
        page: int = 1,
        page_size: Optional[int] = None,
        max_overdue_days: Optional[int] = None,
    ) -> Page[MasteryStateResponse]:
        """
        Due items ordered by urgency: most overdue first, then least mastered.

        Raises:
            InvalidInputError: If max_overdue_days is negative
        """
        if max_overdue_days is not None and max_overdue_days < 0:
            raise InvalidInputError(
                "maxOverdueDays must be zero or positive",
                details={"max_overdue_days": max_overdue_days},
            )

        page_size = page_size or settings.REVIEW_DEFAULT_PAGE_SIZE
        records = await self._load_due_states(user_id, as_of)
        ranked = rank_by_priority(records, as_of, max_overdue_days=max_overdue_days)

        result = paginate(ranked, page, page_size)
        return dataclasses.replace(
            result,
            items=[
                self._to_response(r.item, overdue_days=r.overdue_days)
                for r in result.items
            ],
        )

    async def get_progress(self, user_id: str, as_of: date) -> ReviewProgress:
        """
        Counts for the progress view.

        Levels 0-3 are counted over the items due on `as_of`; `completed`
        counts the items that reached completion on that day.
        """
        records = await self._load_due_states(user_id, as_of)
        due = order_due(records, as_of)

        completed_query = select(func.count(MasteryRecord.id)).where(
            MasteryRecord.user_id == user_id,
            MasteryRecord.mastery_level == MasteryLevel.COMPLETED.value,
            MasteryRecord.last_review_date == as_of,
        )
        completed = (await self.db.execute(completed_query)).scalar() or 0

        return ReviewProgress(
            today_total=len(due),
            mastery_distribution=MasteryDistribution(
                **mastery_distribution(due, completed_count=completed)
            ),
            review_date=as_of,
        )

    async def due_counts_by_user(self, as_of: date) -> dict[str, int]:
        """Number of items due on or before `as_of`, per user (batch jobs)."""
        query = (
            select(MasteryRecord.user_id, func.count(MasteryRecord.id))
            .where(
                MasteryRecord.mastery_level < MasteryLevel.COMPLETED.value,
                MasteryRecord.scheduled_date <= as_of,
            )
            .group_by(MasteryRecord.user_id)
        )
        return {user_id: count for user_id, count in (await self.db.execute(query)).all()}

    async def scheduled_counts_by_user(self, day: date) -> dict[str, int]:
        """Number of items that become due exactly on `day`, per user."""
        query = (
            select(MasteryRecord.user_id, func.count(MasteryRecord.id))
            .where(
                MasteryRecord.mastery_level < MasteryLevel.COMPLETED.value,
                MasteryRecord.scheduled_date == day,
            )
            .group_by(MasteryRecord.user_id)
        )
        return {user_id: count for user_id, count in (await self.db.execute(query)).all()}

    async def activity_counts_by_user(self, day: date) -> dict[str, tuple[int, int]]:
        """(completed, correct) review counts on `day`, per user."""
        query = (
            select(
                ReviewHistory.user_id,
                func.count(ReviewHistory.id),
                func.sum(case((ReviewHistory.is_correct.is_(True), 1), else_=0)),
            )
            .where(ReviewHistory.review_date == day)
            .group_by(ReviewHistory.user_id)
        )
        return {
            user_id: (completed, correct or 0)
            for user_id, completed, correct in (await self.db.execute(query)).all()
        }

    async def system_metrics(self, day: date) -> SystemMetrics:
        """
        Review workload and activity across all users for one day key.

        The day's workload is what was completed plus what is still due, so
        the completion rate reaches 1.0 once every due item was reviewed.
        """
        due = await self.due_counts_by_user(day)
        activity = await self.activity_counts_by_user(day)

        still_due = sum(due.values())
        completed = sum(c for c, _ in activity.values())
        correct = sum(c for _, c in activity.values())
        workload = completed + still_due

        return SystemMetrics(
            metrics_day=day,
            users=UserActivityCounts(
                total=len(set(due) | set(activity)),
                active=sum(1 for c, _ in activity.values() if c > 0),
            ),
            reviews=ReviewActivityCounts(
                due=still_due,
                completed=completed,
                correct=correct,
                completion_rate=completed / workload if workload else 0.0,
                accuracy_rate=correct / completed if completed else 0.0,
            ),
        )

    # ===========================================
    # Statistics
    # ===========================================

    async def get_daily_stats(self, user_id: str, day: date) -> DailyStats:
        """Review activity on one day key, recomputed from the history log."""
        query = select(ReviewHistory).where(
            ReviewHistory.user_id == user_id,
            ReviewHistory.review_date == day,
        )
        events = (await self.db.execute(query)).scalars().all()
        return DailyStats.model_validate(aggregate_day(events, day).to_dict())

    async def get_efficiency(
        self,
        user_id: str,
        start_date: date,
        end_date: date,
    ) -> EfficiencyReport:
        """
        Review effectiveness over an inclusive date range.

        Raises:
            InvalidInputError: If the range is reversed or longer than
                REVIEW_EFFICIENCY_MAX_RANGE_DAYS
        """
        if start_date > end_date:
            raise InvalidInputError(
                "startDate must not be after endDate",
                details={"start_date": start_date, "end_date": end_date},
            )
        max_days = settings.REVIEW_EFFICIENCY_MAX_RANGE_DAYS
        if end_date - start_date >= timedelta(days=max_days):
            raise InvalidInputError(
                f"Date range may span at most {max_days} days",
                details={"start_date": start_date, "end_date": end_date},
            )

        query = select(ReviewHistory).where(
            ReviewHistory.user_id == user_id,
            ReviewHistory.review_date >= start_date,
            ReviewHistory.review_date <= end_date,
        )
        events = (await self.db.execute(query)).scalars().all()
        return EfficiencyReport.model_validate(
            efficiency_report(events, start_date, end_date)
        )

    # ===========================================
    # Helpers
    # ===========================================

    async def _find_state(self, user_id: str, problem_id: str) -> Optional[MasteryRecord]:
        query = select(MasteryRecord).where(
            MasteryRecord.user_id == user_id,
            MasteryRecord.problem_id == problem_id,
        )
        return (await self.db.execute(query)).scalar_one_or_none()

    async def _get_owned_state(self, user_id: str, record_id: str) -> MasteryRecord:
        query = (
            select(MasteryRecord)
            .where(MasteryRecord.id == record_id)
            .execution_options(populate_existing=True)
        )
        record = (await self.db.execute(query)).scalar_one_or_none()

        # Foreign records are reported exactly like missing ones
        if record is None or record.user_id != user_id:
            raise NotFoundError(f"Review record {record_id} not found")
        return record

    async def _find_history(
        self, record_id: str, submission_id: str
    ) -> Optional[ReviewHistory]:
        query = select(ReviewHistory).where(
            ReviewHistory.mastery_state_id == record_id,
            ReviewHistory.idempotency_key == submission_id,
        )
        return (await self.db.execute(query)).scalar_one_or_none()

    async def _load_due_states(self, user_id: str, as_of: date) -> list[MasteryRecord]:
        """
        Rows scheduled on or before `as_of`, each checked against the state
        invariants so corrupt rows surface instead of being listed.
        """
        query = select(MasteryRecord).where(
            MasteryRecord.user_id == user_id,
            MasteryRecord.scheduled_date <= as_of,
        )
        records = list((await self.db.execute(query)).scalars().all())
        for record in records:
            MasteryStateSnapshot.from_record(record)
        return records

    def _result_from_history(self, history: ReviewHistory) -> ReviewCompletionResult:
        return ReviewCompletionResult(
            record_id=history.mastery_state_id,
            mastery_level=history.level_after,
            next_review_date=history.scheduled_date_after,
            mastery_level_changed=history.level_after != history.level_before,
            duplicate=True,
        )

    def _to_response(
        self, record: MasteryRecord, overdue_days: Optional[int] = None
    ) -> MasteryStateResponse:
        """Convert database model to response model."""
        response = MasteryStateResponse.model_validate(record)
        if overdue_days is not None:
            response.overdue_days = overdue_days
        return response
