"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across unit and integration tests.

Tests run against SQLite (aiosqlite) instead of PostgreSQL. Settings and the
application engine are created at import time, so the test environment is
applied at module import, before any `app` module is loaded.
"""

import os
import sys
from datetime import date, datetime, timezone
from pathlib import Path
from typing import AsyncGenerator, Callable
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio
from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

# Add the backend directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file from project root, then force test values over it
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

TEST_ENV = {
    "DATABASE_URL": "sqlite+aiosqlite://",
    "REVIEW_API_KEY": "",
    "REVIEW_TIMEZONE": "Asia/Seoul",
    "SCHEDULER_ENABLED": "false",
    "DEBUG": "true",
}
os.environ.update(TEST_ENV)

from app.db.base import Base  # noqa: E402

TEST_USER = "user-1"
OTHER_USER = "user-2"


# ============================================================================
# Time Fixtures
# ============================================================================


@pytest.fixture
def review_day() -> date:
    """A fixed day key in the review timezone."""
    return date(2024, 3, 15)


@pytest.fixture
def review_now() -> datetime:
    """Noon on review_day in Asia/Seoul (03:00 UTC)."""
    return datetime(2024, 3, 15, 3, 0, tzinfo=timezone.utc)


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_db_session() -> MagicMock:
    """
    Create a mock database session for unit testing.
    """
    mock = MagicMock()
    mock.execute = AsyncMock()
    mock.commit = AsyncMock()
    mock.rollback = AsyncMock()
    mock.refresh = AsyncMock()
    mock.close = AsyncMock()
    return mock


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    In-memory SQLite engine with the review tables created.

    StaticPool keeps one connection, so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(db_engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_maker: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """Database session for a single test."""
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def file_session_maker(tmp_path: Path) -> AsyncGenerator[async_sessionmaker, None]:
    """
    Session factory over a file-backed SQLite database.

    Each session gets its own connection, which concurrency tests need to
    run writers in independent transactions.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'review.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


# ============================================================================
# API Client Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def api_client(
    session_maker: async_sessionmaker,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Async HTTP client for the FastAPI app, bound to the test database.

    Overrides get_db so every request gets its own session on the test
    engine. The client sends TEST_USER's identity header by default.

    Note: As of httpx 0.28+, ASGITransport must be used instead of passing
    `app` directly to AsyncClient.
    """
    # Import here to defer until after environment is configured
    from app.db.base import get_db
    from app.main import app

    async def get_test_db():
        """Yield a test database session instead of the application one."""
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = get_test_db

    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-User-Id": TEST_USER},
    ) as client:
        yield client

    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def make_record() -> Callable:
    """Factory for MasteryRecord rows with sensible defaults."""
    from app.db.models_review import MasteryRecord

    def _make(
        problem_id: str,
        mastery_level: int = 0,
        scheduled_date: date = None,
        user_id: str = TEST_USER,
        **kwargs,
    ) -> MasteryRecord:
        return MasteryRecord(
            user_id=user_id,
            problem_id=problem_id,
            mastery_level=mastery_level,
            scheduled_date=scheduled_date,
            stage_table_version=kwargs.pop("stage_table_version", "item-v1"),
            consecutive_correct=kwargs.pop("consecutive_correct", 0),
            total_attempts=kwargs.pop("total_attempts", 0),
            **kwargs,
        )

    return _make
