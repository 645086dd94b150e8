"""
Review API Router

Endpoints for the spaced-repetition review scheduler. Every endpoint acts
on behalf of the user forwarded by the gateway (see app.dependencies).

Endpoints:
- GET /api/review/today - Items due today, oldest due date first
- GET /api/review/progress - Due count and mastery distribution
- GET /api/review/priority - Due items ranked by urgency
- GET /api/review/stats/daily - Review activity of one day
- GET /api/review/efficiency - Review effectiveness over a date range
- GET /api/review/workbooks - Problem sets due for review
- POST /api/review/complete/{record_id} - Apply a graded item review
- POST /api/review/submissions - Record a graded answer by problem id
- POST /api/review/workbooks/enroll - Start reviewing a problem set
- POST /api/review/workbooks/complete/{schedule_id} - Apply a workbook session outcome
"""

from datetime import date
from typing import Optional
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.base import get_db
from app.dependencies import get_current_user_id
from app.middleware.error_handling import handle_endpoint_errors
from app.models.base import ApiResponse, PaginationMeta
from app.models.review import (
    CompleteReviewRequest,
    CompleteWorkbookRequest,
    DailyStats,
    EfficiencyReport,
    EnrollWorkbookRequest,
    MasteryStateResponse,
    ReviewCompletionResult,
    ReviewProgress,
    SubmissionRequest,
    WorkbookCompletionResult,
    WorkbookScheduleResponse,
)
from app.services.review import ReviewService, WorkbookReviewService
from app.services.review.ranking import Page

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/review", tags=["review"])


# ===========================================
# Dependency Injection
# ===========================================


async def get_review_service(
    db: AsyncSession = Depends(get_db),
) -> ReviewService:
    """Get item-level review service."""
    return ReviewService(db)


async def get_workbook_service(
    db: AsyncSession = Depends(get_db),
) -> WorkbookReviewService:
    """Get workbook review service."""
    return WorkbookReviewService(db)


def _paged(page: Page, message: str) -> ApiResponse:
    return ApiResponse(
        message=message,
        data=page.items,
        pagination=PaginationMeta(
            page=page.page,
            limit=page.page_size,
            total=page.total,
            total_pages=page.total_pages,
        ),
    )


PageQuery = Query(1, ge=1, description="1-based page number")
LimitQuery = Query(
    settings.REVIEW_DEFAULT_PAGE_SIZE,
    ge=1,
    le=settings.REVIEW_MAX_PAGE_SIZE,
    description="Items per page",
)


# ===========================================
# Item Review Queues
# ===========================================


@router.get("/today", response_model=ApiResponse[list[MasteryStateResponse]])
@handle_endpoint_errors("Get today's review targets")
async def get_today_review_targets(
    page: int = PageQuery,
    limit: int = LimitQuery,
    user_id: str = Depends(get_current_user_id),
    service: ReviewService = Depends(get_review_service),
) -> ApiResponse:
    """
    Get the items due for review today.

    Ordered by scheduled date (oldest first), then problem id.
    """
    result = await service.get_due(user_id, service.today(), page=page, page_size=limit)
    return _paged(result, "Today's review targets retrieved")


@router.get("/progress", response_model=ApiResponse[ReviewProgress])
@handle_endpoint_errors("Get review progress")
async def get_review_progress(
    user_id: str = Depends(get_current_user_id),
    service: ReviewService = Depends(get_review_service),
) -> ApiResponse:
    """
    Get today's due count and the mastery level distribution.

    Returns:
    - todayTotal: Items due today
    - masteryDistribution: Due items per level, plus items completed today
    - reviewDate: Day the counts refer to
    """
    progress = await service.get_progress(user_id, service.today())
    return ApiResponse(message="Review progress retrieved", data=progress)


@router.get("/priority", response_model=ApiResponse[list[MasteryStateResponse]])
@handle_endpoint_errors("Get priority review targets")
async def get_priority_review_targets(
    page: int = PageQuery,
    limit: int = LimitQuery,
    max_overdue_days: Optional[int] = Query(
        None,
        alias="maxOverdueDays",
        description="Leave out items overdue by more than this many days",
    ),
    user_id: str = Depends(get_current_user_id),
    service: ReviewService = Depends(get_review_service),
) -> ApiResponse:
    """
    Get due items ranked by urgency.

    Most overdue first, then lowest mastery level, then problem id. Each
    item carries its overdue_days.
    """
    result = await service.get_by_priority(
        user_id,
        service.today(),
        page=page,
        page_size=limit,
        max_overdue_days=max_overdue_days,
    )
    return _paged(result, "Priority review targets retrieved")


# ===========================================
# Statistics
# ===========================================


@router.get("/stats/daily", response_model=ApiResponse[DailyStats])
@handle_endpoint_errors("Get daily review stats")
async def get_daily_review_stats(
    day: Optional[date] = Query(
        None, alias="date", description="Day to report (default: today)"
    ),
    user_id: str = Depends(get_current_user_id),
    service: ReviewService = Depends(get_review_service),
) -> ApiResponse:
    """Get review counts, accuracy, timing and level changes for one day."""
    stats = await service.get_daily_stats(user_id, day or service.today())
    return ApiResponse(message="Daily review stats retrieved", data=stats)


@router.get("/efficiency", response_model=ApiResponse[EfficiencyReport])
@handle_endpoint_errors("Get review efficiency")
async def get_review_efficiency(
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    user_id: str = Depends(get_current_user_id),
    service: ReviewService = Depends(get_review_service),
) -> ApiResponse:
    """
    Get review effectiveness between two days (inclusive).

    Includes accuracy, mastery gain rate and a per-day breakdown.
    """
    report = await service.get_efficiency(user_id, start_date, end_date)
    return ApiResponse(message="Review efficiency retrieved", data=report)


# ===========================================
# Item Review Completion
# ===========================================


@router.post(
    "/complete/{record_id}", response_model=ApiResponse[ReviewCompletionResult]
)
@handle_endpoint_errors("Complete review")
async def complete_review(
    record_id: str,
    request: CompleteReviewRequest,
    user_id: str = Depends(get_current_user_id),
    service: ReviewService = Depends(get_review_service),
) -> ApiResponse:
    """
    Apply a graded review to one item.

    Correct answers move the item one level up (level 3 → completed);
    incorrect answers move it one level down (floor 0). A repeated
    submissionId returns the first result with duplicate=true.
    """
    result = await service.complete_review(user_id, record_id, request)
    message = "Review already recorded" if result.duplicate else "Review completed"
    return ApiResponse(message=message, data=result)


@router.post("/submissions", response_model=ApiResponse[ReviewCompletionResult])
@handle_endpoint_errors("Record submission")
async def record_submission(
    request: SubmissionRequest,
    user_id: str = Depends(get_current_user_id),
    service: ReviewService = Depends(get_review_service),
) -> ApiResponse:
    """
    Record a graded answer for a problem.

    Enrolls the problem on first exposure, then applies the answer.
    """
    result = await service.record_submission(user_id, request)
    message = "Submission already recorded" if result.duplicate else "Submission recorded"
    return ApiResponse(message=message, data=result)


# ===========================================
# Workbook Reviews
# ===========================================


@router.get("/workbooks", response_model=ApiResponse[list[WorkbookScheduleResponse]])
@handle_endpoint_errors("Get workbook review targets")
async def get_workbook_review_targets(
    page: int = PageQuery,
    limit: int = LimitQuery,
    user_id: str = Depends(get_current_user_id),
    service: WorkbookReviewService = Depends(get_workbook_service),
) -> ApiResponse:
    """Get problem sets due for review today."""
    result = await service.get_workbook_targets(
        user_id, service.today(), page=page, page_size=limit
    )
    return _paged(result, "Workbook review targets retrieved")


@router.post("/workbooks/enroll", response_model=ApiResponse[WorkbookScheduleResponse])
@handle_endpoint_errors("Enroll workbook")
async def enroll_workbook(
    request: EnrollWorkbookRequest,
    user_id: str = Depends(get_current_user_id),
    service: WorkbookReviewService = Depends(get_workbook_service),
) -> ApiResponse:
    """Start reviewing a problem set; returns the existing schedule if any."""
    schedule = await service.ensure_workbook_schedule(user_id, request.problem_set_id)
    return ApiResponse(message="Workbook review schedule ready", data=schedule)


@router.post(
    "/workbooks/complete/{schedule_id}",
    response_model=ApiResponse[WorkbookCompletionResult],
)
@handle_endpoint_errors("Complete workbook review")
async def complete_workbook_review(
    schedule_id: str,
    request: CompleteWorkbookRequest,
    user_id: str = Depends(get_current_user_id),
    service: WorkbookReviewService = Depends(get_workbook_service),
) -> ApiResponse:
    """
    Apply the outcome of a pass through a problem set.

    - success=true: every problem answered correctly, stage + 1
    - success=false: at least one wrong answer, stage - 1 (floor 0)
    - attemptedAll=false: session abandoned, schedule unchanged
    """
    result = await service.complete_workbook_review(
        user_id,
        schedule_id,
        success=request.success,
        attempted_all=request.attempted_all,
        submission_id=request.submission_id,
    )
    if result.duplicate:
        message = "Workbook review already recorded"
    elif result.completed:
        message = "Workbook review completed"
    else:
        message = "Workbook session not finished"
    return ApiResponse(message=message, data=result)
