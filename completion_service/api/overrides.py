"""Administrative unit overrides.

POST /v1/admin/overrides            execute one override (201)
POST /v1/admin/overrides/validate   verdict only, writes nothing
POST /v1/admin/overrides/bulk       many overrides, each independent

A rejected override returns 422 with the validator's issue list so the
operator can fix the course/unit pairing without guessing.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from completion_service.api.dependencies import Admin, Engine
from completion_service.api.errors import http_error
from completion_service.api.schemas import ProgressOut
from completion_service.services.engine import OverrideRequest
from completion_service.services.errors import CompletionError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin/overrides", tags=["overrides"])


class OverrideTarget(BaseModel):
    user_id: UUID
    unit_id: UUID
    course_id: UUID


class OverrideIn(OverrideTarget):
    reason: str


class OverrideOut(BaseModel):
    success: bool
    audit_id: UUID
    warnings: list[str]
    progress: ProgressOut


class VerdictOut(BaseModel):
    is_valid: bool
    issues: list[str]
    warnings: list[str]


class BulkOverrideIn(BaseModel):
    items: list[OverrideTarget] = Field(min_length=1, max_length=500)
    reason: str


class BulkItemOut(BaseModel):
    user_id: UUID
    unit_id: UUID
    course_id: UUID
    success: bool
    audit_id: UUID | None
    error: str | None
    warnings: list[str]


class BulkOverrideOut(BaseModel):
    completed: int
    failed: int
    affected_users: int
    errors: list[str]
    results: list[BulkItemOut]


@router.post("", response_model=OverrideOut, status_code=status.HTTP_201_CREATED)
async def create_override(
    body: OverrideIn,
    principal: Admin,
    engine: Engine,
) -> OverrideOut:
    try:
        result = await engine.request_override(
            body.user_id,
            body.unit_id,
            body.course_id,
            body.reason,
            principal.subject,
        )
    except CompletionError as exc:
        raise http_error(exc) from None

    return OverrideOut(
        success=result.success,
        audit_id=result.audit_id,
        warnings=result.warnings,
        progress=ProgressOut.from_domain(result.progress),
    )


@router.post("/validate", response_model=VerdictOut)
async def validate_override(
    body: OverrideTarget,
    _principal: Admin,
    engine: Engine,
) -> VerdictOut:
    verdict = await engine.validate_override(body.user_id, body.unit_id, body.course_id)
    return VerdictOut(
        is_valid=verdict.is_valid, issues=verdict.issues, warnings=verdict.warnings
    )


@router.post("/bulk", response_model=BulkOverrideOut)
async def bulk_override(
    body: BulkOverrideIn,
    principal: Admin,
    engine: Engine,
) -> BulkOverrideOut:
    items = [
        OverrideRequest(user_id=i.user_id, unit_id=i.unit_id, course_id=i.course_id)
        for i in body.items
    ]
    try:
        report = await engine.bulk_override(items, body.reason, principal.subject)
    except CompletionError as exc:
        raise http_error(exc) from None

    return BulkOverrideOut(
        completed=report.completed,
        failed=report.failed,
        affected_users=report.affected_users,
        errors=report.errors,
        results=[
            BulkItemOut(
                user_id=r.request.user_id,
                unit_id=r.request.unit_id,
                course_id=r.request.course_id,
                success=r.success,
                audit_id=r.audit_id,
                error=r.error,
                warnings=r.warnings,
            )
            for r in report.results
        ],
    )
