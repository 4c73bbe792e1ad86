"""ASGI entry point: ``uvicorn completion_service.main:app``."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from completion_service.api import admin, audit, courses, health, overrides, progress
from completion_service.core.config import SETTINGS
from completion_service.core.logging import setup_logging
from completion_service.db.engine import lifespan_db
from completion_service.db.redis import lifespan_redis
from completion_service.middleware.metrics import MetricsMiddleware
from completion_service.middleware.request_context import RequestContextMiddleware

setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)

_ROUTERS = (health, overrides, progress, audit, admin, courses)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    async with lifespan_db(), lifespan_redis():
        yield


def create_app() -> FastAPI:
    application = FastAPI(
        title="completion-service",
        lifespan=lifespan,
        docs_url="/docs" if SETTINGS.is_dev else None,
        redoc_url=None,
    )
    # Added last runs first: the request id exists before metrics are taken.
    application.add_middleware(MetricsMiddleware)
    application.add_middleware(RequestContextMiddleware)
    for module in _ROUTERS:
        application.include_router(module.router)

    logger.info(
        "completion-service ready  env=%s store=%s cache=%s",
        SETTINGS.app_env,
        "postgres" if SETTINGS.database_url else "memory",
        "redis" if SETTINGS.redis_url else "memory",
    )
    return application


app = create_app()
