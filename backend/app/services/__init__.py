"""Services package for review scheduling and batch jobs."""

from app.services.review import ReviewService, WorkbookReviewService

__all__ = [
    "ReviewService",
    "WorkbookReviewService",
]
