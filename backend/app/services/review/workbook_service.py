"""
Workbook Review Service

Problem-set level review scheduling. Uses the same staged transition rule
as item reviews, but reacts to one outcome per pass through the whole set:

- passed (every problem attempted, none wrong) → stage + 1
- failed (at least one wrong answer)           → stage - 1, floor 0
- abandoned (set left part-way)                → no change at all

There is no completed stage: stages past the workbook table keep reusing
its last interval.
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.config.settings import settings
from app.db.models_review import WorkbookReviewHistory, WorkbookReviewSchedule
from app.enums.review import WorkbookSessionOutcome
from app.middleware.error_handling import InvariantViolationError, NotFoundError
from app.models.review import WorkbookCompletionResult, WorkbookScheduleResponse
from app.services.review.concurrency import run_with_conflict_retry, workbook_locks
from app.services.review.ranking import Page, paginate
from app.services.review.staged_scheduler import (
    StagedScheduler,
    create_workbook_scheduler,
)

logger = logging.getLogger(__name__)


def session_outcome(success: bool, attempted_all: bool = True) -> WorkbookSessionOutcome:
    """Classify a workbook session from the client's two flags."""
    if not attempted_all:
        return WorkbookSessionOutcome.ABANDONED
    return WorkbookSessionOutcome.PASSED if success else WorkbookSessionOutcome.FAILED


class WorkbookReviewService:
    """Service for workbook (problem set) review schedules."""

    def __init__(
        self,
        db: AsyncSession,
        scheduler: Optional[StagedScheduler] = None,
        tz: Optional[str] = None,
    ):
        self.db = db
        self.scheduler = scheduler or create_workbook_scheduler()
        self.tz = ZoneInfo(tz or settings.REVIEW_TIMEZONE)

    def today(self, now: Optional[datetime] = None) -> date:
        now = now or datetime.now(timezone.utc)
        return now.astimezone(self.tz).date()

    async def ensure_workbook_schedule(
        self,
        user_id: str,
        problem_set_id: str,
        today: Optional[date] = None,
    ) -> WorkbookScheduleResponse:
        """Return the user's schedule for a problem set, creating it at stage 0."""
        schedule = await self._find_schedule(user_id, problem_set_id)
        if schedule is None:
            today = today or self.today()
            schedule = WorkbookReviewSchedule(
                user_id=user_id,
                problem_set_id=problem_set_id,
                review_stage=0,
                next_review_date=self.scheduler.initial_due_date(today),
                stage_table_version=self.scheduler.table.version,
                total_sessions=0,
            )
            self.db.add(schedule)
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                schedule = await self._find_schedule(user_id, problem_set_id)
                if schedule is None:
                    raise
            else:
                await self.db.refresh(schedule)
                logger.info(
                    f"Enrolled problem set {problem_set_id} for user {user_id} "
                    f"(schedule {schedule.id})"
                )

        return WorkbookScheduleResponse.model_validate(schedule)

    async def get_workbook_targets(
        self,
        user_id: str,
        as_of: date,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Page[WorkbookScheduleResponse]:
        """Schedules due on or before `as_of`, oldest first, then by set id."""
        page_size = page_size or settings.REVIEW_DEFAULT_PAGE_SIZE
        query = (
            select(WorkbookReviewSchedule)
            .where(
                WorkbookReviewSchedule.user_id == user_id,
                WorkbookReviewSchedule.next_review_date <= as_of,
            )
            .order_by(
                WorkbookReviewSchedule.next_review_date,
                WorkbookReviewSchedule.problem_set_id,
            )
        )
        schedules = (await self.db.execute(query)).scalars().all()

        result = paginate(schedules, page, page_size)
        return Page(
            items=[WorkbookScheduleResponse.model_validate(s) for s in result.items],
            total=result.total,
            page=result.page,
            page_size=result.page_size,
        )

    async def complete_workbook_review(
        self,
        user_id: str,
        schedule_id: str,
        success: bool,
        attempted_all: bool = True,
        now: Optional[datetime] = None,
        submission_id: Optional[str] = None,
    ) -> WorkbookCompletionResult:
        """
        Apply one workbook session outcome.

        With a submission id, a repeat of an already applied outcome returns
        the stored result with duplicate=True and changes nothing.

        Raises:
            NotFoundError: Schedule missing or owned by another user
            ConflictError: Concurrent writers kept winning the version check
        """
        now = now or datetime.now(timezone.utc)
        outcome = session_outcome(success, attempted_all)

        async with workbook_locks.hold(schedule_id):
            return await run_with_conflict_retry(
                lambda: self._apply_outcome_once(
                    user_id, schedule_id, outcome, now, submission_id
                ),
                description=f"complete workbook review {schedule_id}",
            )

    async def _apply_outcome_once(
        self,
        user_id: str,
        schedule_id: str,
        outcome: WorkbookSessionOutcome,
        now: datetime,
        submission_id: Optional[str] = None,
    ) -> WorkbookCompletionResult:
        schedule = await self._get_owned_schedule(user_id, schedule_id)

        if submission_id:
            previous = await self._find_history(schedule.id, submission_id)
            if previous is not None:
                logger.warning(
                    f"Duplicate submission {submission_id} for workbook schedule {schedule_id}"
                )
                return self._result_from_history(previous)

        if outcome == WorkbookSessionOutcome.ABANDONED:
            logger.info(f"Workbook session abandoned for schedule {schedule_id}, no change")
            return WorkbookCompletionResult(
                schedule_id=schedule.id,
                review_stage=schedule.review_stage,
                next_review_date=schedule.next_review_date,
                stage_changed=False,
                completed=False,
            )

        if schedule.next_review_date is None:
            raise InvariantViolationError(
                f"Workbook schedule {schedule_id} has no next review date",
                details={"schedule_id": schedule_id},
            )

        today = self.today(now)
        transition = self.scheduler.apply(
            stage=schedule.review_stage,
            succeeded=outcome == WorkbookSessionOutcome.PASSED,
            today=today,
            key=schedule.problem_set_id,
        )

        schedule.review_stage = transition.stage_after
        schedule.next_review_date = transition.due_date
        schedule.stage_table_version = transition.table_version
        schedule.total_sessions = (schedule.total_sessions or 0) + 1
        schedule.last_reviewed_at = now
        self.db.add(
            WorkbookReviewHistory(
                schedule_id=schedule.id,
                user_id=user_id,
                problem_set_id=schedule.problem_set_id,
                success=outcome == WorkbookSessionOutcome.PASSED,
                occurred_at=now,
                review_date=today,
                stage_before=transition.stage_before,
                stage_after=transition.stage_after,
                next_review_date_after=transition.due_date,
                idempotency_key=submission_id,
            )
        )

        try:
            await self.db.commit()
        except StaleDataError:
            await self.db.rollback()
            logger.warning(f"Version conflict on workbook schedule {schedule_id}, re-reading")
            raise
        except IntegrityError:
            await self.db.rollback()
            if submission_id:
                previous = await self._find_history(schedule_id, submission_id)
                if previous is not None:
                    logger.warning(
                        f"Duplicate submission {submission_id} "
                        f"for workbook schedule {schedule_id} (insert race)"
                    )
                    return self._result_from_history(previous)
            raise

        logger.info(
            f"Workbook review applied: schedule={schedule_id} ({outcome.value}) "
            f"stage {transition.stage_before} -> {transition.stage_after}, "
            f"next review {transition.due_date}"
        )

        return WorkbookCompletionResult(
            schedule_id=schedule_id,
            review_stage=transition.stage_after,
            next_review_date=transition.due_date,
            stage_changed=transition.changed,
            completed=True,
        )

    async def _find_schedule(
        self, user_id: str, problem_set_id: str
    ) -> Optional[WorkbookReviewSchedule]:
        query = select(WorkbookReviewSchedule).where(
            WorkbookReviewSchedule.user_id == user_id,
            WorkbookReviewSchedule.problem_set_id == problem_set_id,
        )
        return (await self.db.execute(query)).scalar_one_or_none()

    async def _find_history(
        self, schedule_id: str, submission_id: str
    ) -> Optional[WorkbookReviewHistory]:
        query = select(WorkbookReviewHistory).where(
            WorkbookReviewHistory.schedule_id == schedule_id,
            WorkbookReviewHistory.idempotency_key == submission_id,
        )
        return (await self.db.execute(query)).scalar_one_or_none()

    def _result_from_history(
        self, history: WorkbookReviewHistory
    ) -> WorkbookCompletionResult:
        return WorkbookCompletionResult(
            schedule_id=history.schedule_id,
            review_stage=history.stage_after,
            next_review_date=history.next_review_date_after,
            stage_changed=history.stage_after != history.stage_before,
            completed=True,
            duplicate=True,
        )

    async def _get_owned_schedule(
        self, user_id: str, schedule_id: str
    ) -> WorkbookReviewSchedule:
        query = (
            select(WorkbookReviewSchedule)
            .where(WorkbookReviewSchedule.id == schedule_id)
            .execution_options(populate_existing=True)
        )
        schedule = (await self.db.execute(query)).scalar_one_or_none()
        if schedule is None or schedule.user_id != user_id:
            raise NotFoundError(f"Workbook schedule {schedule_id} not found")
        return schedule
