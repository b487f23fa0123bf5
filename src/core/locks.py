"""Per-key serialization for progress mutations.

All writes to one student's progress in one course go through a single lock.
With Redis configured the lock is shared by every API worker; otherwise an
``asyncio.Lock`` per key serializes requests inside this process.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

import redis.asyncio as redis
import structlog
from redis.exceptions import LockError

from src.core.redis import progress_lock_key


logger = structlog.get_logger(__name__)


class LockAcquireTimeout(Exception):
    """The lock could not be acquired within the wait budget."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Timed out waiting for lock {key}")


class ProgressLockManager:
    """Hands out the (student, course) serialization point."""

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        timeout_seconds: float = 10.0,
        wait_seconds: float = 5.0,
    ):
        self.redis = redis_client
        self.timeout_seconds = timeout_seconds
        self.wait_seconds = wait_seconds
        self._local_locks: dict[str, asyncio.Lock] = {}
        self._local_waiters: dict[str, int] = {}

    @property
    def is_distributed(self) -> bool:
        return self.redis is not None

    @asynccontextmanager
    async def hold(self, student_id: UUID, course_id: UUID) -> AsyncIterator[None]:
        """Hold the lock for one student's progress in one course.

        Raises:
            LockAcquireTimeout: If the lock is not free within wait_seconds
        """
        key = progress_lock_key(student_id, course_id)
        if self.redis is not None:
            async with self._hold_redis(key):
                yield
        else:
            async with self._hold_local(key):
                yield

    @asynccontextmanager
    async def _hold_redis(self, key: str) -> AsyncIterator[None]:
        lock = self.redis.lock(
            key,
            timeout=self.timeout_seconds,
            blocking_timeout=self.wait_seconds,
        )
        if not await lock.acquire():
            logger.warning("progress_lock_timeout", key=key, backend="redis")
            raise LockAcquireTimeout(key)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Held longer than timeout_seconds; another worker may own it now
                logger.warning("progress_lock_expired", key=key)

    @asynccontextmanager
    async def _hold_local(self, key: str) -> AsyncIterator[None]:
        lock = self._local_locks.setdefault(key, asyncio.Lock())
        self._local_waiters[key] = self._local_waiters.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.wait_seconds)
            except TimeoutError as e:
                logger.warning("progress_lock_timeout", key=key, backend="local")
                raise LockAcquireTimeout(key) from e
            try:
                yield
            finally:
                lock.release()
        finally:
            self._local_waiters[key] -= 1
            if not self._local_waiters[key]:
                del self._local_waiters[key]
                self._local_locks.pop(key, None)
