"""API Routers package."""

from app.routers import health as health_router
from app.routers import review as review_router
from app.routers import scheduler as scheduler_router

__all__ = ["health_router", "review_router", "scheduler_router"]
