"""Response models shared by several routers."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel

from completion_service.models.audit import AuditEntry
from completion_service.models.progress import CourseProgress


class ProgressOut(BaseModel):
    user_id: UUID
    course_id: UUID
    status: str
    progress_percentage: int
    completed_units: int
    total_units: int
    started_at: int | None
    completed_at: int | None
    last_accessed_at: int | None

    @classmethod
    def from_domain(cls, p: CourseProgress) -> ProgressOut:
        return cls(
            user_id=p.user_id,
            course_id=p.course_id,
            status=p.status,
            progress_percentage=p.progress_percentage,
            completed_units=p.completed_units,
            total_units=p.total_units,
            started_at=p.started_at,
            completed_at=p.completed_at,
            last_accessed_at=p.last_accessed_at,
        )


class AuditEntryOut(BaseModel):
    id: UUID
    target_user_id: UUID
    action_type: str
    performed_by: str
    performed_at: int
    reason: str
    old_data: dict[str, Any] | None
    new_data: dict[str, Any] | None
    request_id: str | None

    @classmethod
    def from_domain(cls, e: AuditEntry) -> AuditEntryOut:
        return cls(
            id=e.id,
            target_user_id=e.target_user_id,
            action_type=e.action_type,
            performed_by=e.performed_by,
            performed_at=e.performed_at,
            reason=e.reason,
            old_data=e.old_data,
            new_data=e.new_data,
            request_id=e.request_id,
        )
