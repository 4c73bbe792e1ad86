"""Per-(user, course) serialization for progress writes.

Overrides, natural completions and recalculations for the same learner in
the same course must not interleave: each one reads the completion facts,
recomputes the aggregate and writes it back.  Two of them racing would let
the later writer persist a count that misses the earlier fact.

Two backends, chosen the same way as the progress cache:

  * InMemoryLockManager: one asyncio.Lock per key, kept only while someone
    holds or waits on it.  Correct within a single process (tests, local
    dev, one uvicorn worker).

  * RedisLockManager: redis-py's Lock (SET NX PX + token check on release).
    The lease (LOCK_TIMEOUT_SECONDS) bounds how long a crashed holder can
    block others; the wait (LOCK_WAIT_SECONDS) bounds how long a request
    queues before giving up with PersistenceError.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Protocol
from uuid import UUID

from redis.exceptions import LockError, RedisError

from completion_service.core.config import SETTINGS
from completion_service.core.metrics import LOCK_WAIT
from completion_service.db.redis import redis_pool
from completion_service.services.errors import PersistenceError

logger = logging.getLogger(__name__)


def lock_key(user_id: UUID, course_id: UUID) -> str:
    return f"lock:progress:{user_id}:{course_id}"


class LockManager(Protocol):
    def hold(self, user_id: UUID, course_id: UUID) -> Any: ...


class InMemoryLockManager:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @property
    def key_count(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, user_id: UUID, course_id: UUID) -> AsyncIterator[None]:
        key = lock_key(user_id, course_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        start = time.monotonic()
        try:
            async with lock:
                LOCK_WAIT.observe(time.monotonic() - start)
                yield
        finally:
            # Counts holders plus queued waiters; the last one out drops the key.
            self._waiters[key] -= 1
            if not self._waiters[key]:
                del self._waiters[key]
                del self._locks[key]

    def clear(self) -> None:
        self._locks.clear()
        self._waiters.clear()


class RedisLockManager:
    def __init__(
        self,
        redis_client,
        *,
        timeout_seconds: int = 10,
        wait_seconds: int = 5,
    ) -> None:
        self._redis = redis_client
        self._timeout = timeout_seconds
        self._wait = wait_seconds

    @asynccontextmanager
    async def hold(self, user_id: UUID, course_id: UUID) -> AsyncIterator[None]:
        key = lock_key(user_id, course_id)
        lock = self._redis.lock(
            key, timeout=self._timeout, blocking_timeout=self._wait
        )
        start = time.monotonic()
        try:
            acquired = await lock.acquire()
        except RedisError as exc:
            logger.error("Lock backend unavailable for %s", key)
            raise PersistenceError("lock backend unavailable") from exc
        LOCK_WAIT.observe(time.monotonic() - start)
        if not acquired:
            logger.warning("Timed out after %ss waiting for %s", self._wait, key)
            raise PersistenceError("could not acquire progress lock")

        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Lease expired while we held it; another holder may
                # already own the key.
                logger.warning("Lock %s expired before release", key)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    lock_manager: LockManager = RedisLockManager(
        redis_pool,
        timeout_seconds=SETTINGS.lock_timeout_seconds,
        wait_seconds=SETTINGS.lock_wait_seconds,
    )
else:
    lock_manager = InMemoryLockManager()
