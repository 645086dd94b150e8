"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated.

Usage:
    from app.config import settings

    # Access settings
    db_url = settings.DATABASE_URL_RESOLVED
    intervals = settings.REVIEW_ITEM_INTERVALS
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Review Scheduler"
    DEBUG: bool = False
    CORS_ORIGINS: list[str] = ["*"]

    # PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "reviewscheduler"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "reviewscheduler"

    # Full SQLAlchemy URL override (e.g. sqlite+aiosqlite:// for local runs)
    DATABASE_URL: str = ""

    @property
    def POSTGRES_URL(self) -> str:
        """Async PostgreSQL connection URL."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def POSTGRES_URL_SYNC(self) -> str:
        """Sync PostgreSQL connection URL for Alembic migrations."""
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def DATABASE_URL_RESOLVED(self) -> str:
        """Connection URL used by the engine (override wins over PostgreSQL)."""
        return self.DATABASE_URL or self.POSTGRES_URL

    # Authentication gateway
    # Empty key disables the X-API-Key check (development mode).
    REVIEW_API_KEY: str = ""
    USER_ID_HEADER: str = "X-User-Id"

    # Stage tables (interval in days per stage)
    # Item level: stage 0..3, stage 4 is the terminal "completed" stage.
    REVIEW_ITEM_INTERVALS: list[int] = [1, 3, 7, 14]
    REVIEW_ITEM_TABLE_VERSION: str = "item-v1"
    # Workbook level: no terminal stage, later stages reuse the last interval.
    REVIEW_WORKBOOK_INTERVALS: list[int] = [1, 3, 7, 14, 30]
    REVIEW_WORKBOOK_TABLE_VERSION: str = "workbook-v1"

    # Day boundaries for "today" and daily stats
    REVIEW_TIMEZONE: str = "Asia/Seoul"

    # Pagination
    REVIEW_DEFAULT_PAGE_SIZE: int = 20
    REVIEW_MAX_PAGE_SIZE: int = 100

    # Optimistic concurrency
    REVIEW_CONFLICT_MAX_ATTEMPTS: int = 3
    REVIEW_CONFLICT_RETRY_WAIT_SECONDS: float = 0.05

    # Analytics
    REVIEW_EFFICIENCY_MAX_RANGE_DAYS: int = 366

    # Batch jobs
    SCHEDULER_ENABLED: bool = True
    REVIEW_TARGETS_JOB_HOUR: int = 6
    REVIEW_REMINDER_JOB_HOUR: int = 21

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@lru_cache()
def load_yaml_config() -> dict[str, Any]:
    """Load application configuration from config/default.yaml."""
    config_path = Path(__file__).parent.parent.parent.parent / "config" / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


yaml_config: dict[str, Any] = load_yaml_config()
