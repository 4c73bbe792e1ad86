"""Operational endpoints: liveness, readiness and the Prometheus scrape.

  /health   always 200; reports database and redis as ok, degraded or
            not_configured.
  /ready    503 while a configured database is unreachable, since every
            engine operation needs the store.  Redis is left out: a lost
            cache only costs a recalculation and a failed lock is already
            a per-request 503.
  /metrics  text exposition format; unauthenticated, restrict at the edge.
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from completion_service.db.engine import database_status
from completion_service.db.redis import redis_status

router = APIRouter(tags=["observability"])


@router.get("/health")
async def health() -> dict:
    checks = {"database": await database_status(), "redis": await redis_status()}
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    code = 503 if await database_status() == "degraded" else 200
    return Response(status_code=code)


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
