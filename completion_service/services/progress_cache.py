"""Read-through cache for CourseProgress.

get_progress() asks the cache first; on a miss it reads the store and
populates the entry with a TTL (PROGRESS_CACHE_TTL).  Every write path
that changes a (user, course) aggregate invalidates that key after its
transaction finishes, so the TTL is only the backstop for a missed
invalidation.

Values are the JSON form of CourseProgress.snapshot().
"""

from __future__ import annotations

import json
import logging
import time
from typing import Protocol, runtime_checkable
from uuid import UUID

from completion_service.core.config import SETTINGS
from completion_service.core.metrics import PROGRESS_CACHE_OPERATIONS
from completion_service.db.redis import redis_pool
from completion_service.models.progress import CourseProgress

logger = logging.getLogger(__name__)


def progress_key(user_id: UUID, course_id: UUID) -> str:
    return f"progress:{user_id}:{course_id}"


def encode_progress(progress: CourseProgress) -> str:
    return json.dumps(progress.snapshot())


def decode_progress(raw: str) -> CourseProgress:
    data = json.loads(raw)
    return CourseProgress(
        user_id=UUID(data["user_id"]),
        course_id=UUID(data["course_id"]),
        status=data["status"],
        progress_percentage=data["progress_percentage"],
        completed_units=data["completed_units"],
        total_units=data["total_units"],
        started_at=data["started_at"],
        completed_at=data["completed_at"],
        last_accessed_at=data["last_accessed_at"],
    )


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryCacheService:
    """Process-local entries with monotonic-clock expiry."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if time.monotonic() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (value, time.monotonic() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()


class RedisCacheService:
    """Redis-backed cache shared by every API instance."""

    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")


class ProgressCache:
    """Typed wrapper that counts hits, misses and invalidations."""

    def __init__(self, backend: CacheService, ttl_seconds: int) -> None:
        self._backend = backend
        self._ttl = ttl_seconds

    async def get(self, user_id: UUID, course_id: UUID) -> CourseProgress | None:
        raw = await self._backend.get(progress_key(user_id, course_id))
        if raw is None:
            PROGRESS_CACHE_OPERATIONS.labels(operation="miss").inc()
            return None
        PROGRESS_CACHE_OPERATIONS.labels(operation="hit").inc()
        return decode_progress(raw)

    async def put(self, progress: CourseProgress) -> None:
        await self._backend.set(
            progress_key(progress.user_id, progress.course_id),
            encode_progress(progress),
            self._ttl,
        )

    async def invalidate(self, user_id: UUID, course_id: UUID) -> None:
        PROGRESS_CACHE_OPERATIONS.labels(operation="invalidate").inc()
        await self._backend.delete(progress_key(user_id, course_id))


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()

progress_cache = ProgressCache(cache_service, SETTINGS.progress_cache_ttl)
