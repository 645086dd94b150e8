"""Pydantic models for the application."""

from app.models.base import ApiResponse, PaginationMeta
from app.models.review import (
    CompleteReviewRequest,
    CompleteWorkbookRequest,
    DailyStats,
    EfficiencyReport,
    MasteryStateResponse,
    ReviewCompletionResult,
    ReviewProgress,
    WorkbookCompletionResult,
    WorkbookScheduleResponse,
)

__all__ = [
    "ApiResponse",
    "PaginationMeta",
    "CompleteReviewRequest",
    "CompleteWorkbookRequest",
    "DailyStats",
    "EfficiencyReport",
    "MasteryStateResponse",
    "ReviewCompletionResult",
    "ReviewProgress",
    "WorkbookCompletionResult",
    "WorkbookScheduleResponse",
]
