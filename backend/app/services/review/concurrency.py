"""
Per-Key Write Serialization

Review transitions depend on the current stage, so two completions for the
same (user, problem) must never interleave their read-modify-write cycles.

Two layers:
- KeyedLock: within one process, every key gets its own asyncio.Lock and
  writers run one at a time in arrival order.
- Version column: across processes, each state row carries a version that
  SQLAlchemy checks on UPDATE (version_id_col). A lost race raises
  StaleDataError; run_with_conflict_retry() re-runs the whole
  read-modify-write a few times and then reports a ConflictError.

Usage:
    from app.services.review.concurrency import mastery_locks, run_with_conflict_retry

    async with mastery_locks.hold(record_id):
        result = await run_with_conflict_retry(
            lambda: self._apply_once(record_id, ...),
            description=f"complete review {record_id}",
        )
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Hashable, Optional, TypeVar

from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from app.config import settings
from app.middleware.error_handling import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class KeyedLock:
    """
    A lazily created asyncio.Lock per key.

    Locks are reference counted and dropped once no task holds or waits on
    them, so the table stays proportional to in-flight writes rather than to
    every key ever seen. Waiters acquire in arrival order (asyncio.Lock is
    FIFO), which makes the final state follow submission order.
    """

    def __init__(self, name: str):
        self.name = name
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1

        if lock.locked():
            logger.debug(f"{self.name}: waiting for write lock on {key!r}")

        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


async def run_with_conflict_retry(
    operation: Callable[[], Awaitable[T]],
    description: str,
    max_attempts: Optional[int] = None,
) -> T:
    """
    Run a read-modify-write, re-running it when its version check fails.

    The operation must roll back its session before letting StaleDataError
    escape, so the next attempt re-reads the current row.

    Raises:
        ConflictError: If every attempt lost the race.
    """
    max_attempts = max_attempts or settings.REVIEW_CONFLICT_MAX_ATTEMPTS

    try:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(StaleDataError),
            stop=stop_after_attempt(max_attempts),
            wait=wait_fixed(settings.REVIEW_CONFLICT_RETRY_WAIT_SECONDS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await operation()
    except StaleDataError as e:
        logger.warning(f"{description}: gave up after {max_attempts} version conflicts")
        raise ConflictError(
            f"Concurrent update detected while trying to {description}; retry the request",
            details={"attempts": max_attempts},
        ) from e


# Process-wide lock tables, one per scheduler
mastery_locks = KeyedLock("mastery")
workbook_locks = KeyedLock("workbook")
