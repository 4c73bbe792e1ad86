"""Learner-facing progress endpoints.

GET  /v1/progress/{user_id}/{course_id}
    read-through cached CourseProgress; the learner themself or an admin
POST /v1/progress/courses/{course_id}/units/{unit_id}/complete
    natural completion for the calling learner, rolled up immediately
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter

from completion_service.api.access import calling_learner, ensure_can_read_progress
from completion_service.api.dependencies import Caller, Engine
from completion_service.api.errors import http_error
from completion_service.api.schemas import ProgressOut
from completion_service.services.errors import CompletionError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/progress", tags=["progress"])


@router.get("/{user_id}/{course_id}", response_model=ProgressOut)
async def get_progress(
    user_id: UUID,
    course_id: UUID,
    principal: Caller,
    engine: Engine,
) -> ProgressOut:
    ensure_can_read_progress(principal, user_id)
    try:
        progress = await engine.get_progress(user_id, course_id)
    except CompletionError as exc:
        raise http_error(exc) from None
    return ProgressOut.from_domain(progress)


@router.post(
    "/courses/{course_id}/units/{unit_id}/complete",
    response_model=ProgressOut,
)
async def complete_unit(
    course_id: UUID,
    unit_id: UUID,
    principal: Caller,
    engine: Engine,
) -> ProgressOut:
    learner_id = calling_learner(principal)
    try:
        progress = await engine.record_natural_completion(learner_id, unit_id, course_id)
    except CompletionError as exc:
        raise http_error(exc) from None
    return ProgressOut.from_domain(progress)
