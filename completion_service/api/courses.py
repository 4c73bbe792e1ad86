"""Course-wide maintenance endpoints (admin only).

POST /v1/admin/courses/{course_id}/recalculate
    recompute and commit progress for every learner with facts or progress
GET  /v1/admin/courses/{course_id}/integrity
    read-only comparison of stored vs. derived progress, with a health score
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel

from completion_service.api.dependencies import Admin, Engine
from completion_service.api.errors import http_error
from completion_service.services.errors import CompletionError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin/courses", tags=["courses"])


class ProgressChangeOut(BaseModel):
    user_id: UUID
    old_percentage: int | None
    new_percentage: int
    old_status: str | None
    new_status: str


class RecalculationOut(BaseModel):
    course_id: UUID
    processed: int
    changes: list[ProgressChangeOut]


class FindingOut(BaseModel):
    user_id: UUID
    stored_percentage: int
    derived_percentage: int
    stored_status: str
    problems: list[str]


class IntegrityOut(BaseModel):
    course_id: UUID
    total_records: int
    inconsistent_records: int
    health_score: int
    findings: list[FindingOut]


@router.post("/{course_id}/recalculate", response_model=RecalculationOut)
async def recalculate_course(
    course_id: UUID,
    principal: Admin,
    engine: Engine,
) -> RecalculationOut:
    logger.info("Course %s recalculation requested by %s", course_id, principal.subject)
    try:
        report = await engine.recalculate_course(course_id)
    except CompletionError as exc:
        raise http_error(exc) from None
    return RecalculationOut(
        course_id=report.course_id,
        processed=report.processed,
        changes=[
            ProgressChangeOut(
                user_id=c.user_id,
                old_percentage=c.old_percentage,
                new_percentage=c.new_percentage,
                old_status=c.old_status,
                new_status=c.new_status,
            )
            for c in report.changes
        ],
    )


@router.get("/{course_id}/integrity", response_model=IntegrityOut)
async def course_integrity(
    course_id: UUID,
    _principal: Admin,
    engine: Engine,
) -> IntegrityOut:
    try:
        report = await engine.diagnose_course(course_id)
    except CompletionError as exc:
        raise http_error(exc) from None
    return IntegrityOut(
        course_id=report.course_id,
        total_records=report.total_records,
        inconsistent_records=report.inconsistent_records,
        health_score=report.health_score,
        findings=[
            FindingOut(
                user_id=f.user_id,
                stored_percentage=f.stored_percentage,
                derived_percentage=f.derived_percentage,
                stored_status=f.stored_status,
                problems=f.problems,
            )
            for f in report.findings
        ],
    )
