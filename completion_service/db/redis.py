"""Shared Redis client for the progress cache and the progress locks.

Unset REDIS_URL means both run in-process (see services/locks.py and
services/progress_cache.py) and no Redis server is needed.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from completion_service.core.config import SETTINGS

logger = logging.getLogger(__name__)

redis_pool: aioredis.Redis | None = None  # type: ignore[type-arg]

if SETTINGS.redis_url:
    redis_pool = aioredis.from_url(
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )


async def redis_status() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except (RedisError, OSError):
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"
    return "ok"


@asynccontextmanager
async def lifespan_redis() -> AsyncIterator[None]:
    if redis_pool is None:
        logger.info("REDIS_URL unset; progress cache and locks are in-process")
        yield
        return

    # A failed ping does not stop startup: /health reports redis as
    # degraded and lock acquisition fails per request with a 503.
    if await redis_status() == "ok":
        logger.info("Redis reachable for progress cache and locks")
    try:
        yield
    finally:
        await redis_pool.aclose()
        logger.info("Redis pool closed")
