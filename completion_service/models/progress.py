from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from uuid import UUID

ProgressStatus = Literal["not_started", "in_progress", "completed"]

# Forward order of the status state machine.
STATUS_ORDER: dict[str, int] = {"not_started": 0, "in_progress": 1, "completed": 2}


def percentage(completed_units: int, total_units: int) -> int:
    """Integer percentage, rounded half up.  Zero units yields 0."""
    if total_units <= 0:
        return 0
    return (200 * completed_units + total_units) // (2 * total_units)


def status_for(progress_percentage: int) -> ProgressStatus:
    if progress_percentage >= 100:
        return "completed"
    if progress_percentage <= 0:
        return "not_started"
    return "in_progress"


@dataclass(frozen=True, slots=True)
class CourseProgress:
    """Authoritative per-(user, course) summary derived from completion facts.

    status is a function of progress_percentage (see status_for).
    completed_at is set once, on the transition into "completed".
    """

    user_id: UUID
    course_id: UUID
    status: ProgressStatus = "not_started"
    progress_percentage: int = 0
    completed_units: int = 0
    total_units: int = 0
    started_at: int | None = None
    completed_at: int | None = None
    last_accessed_at: int | None = None

    @property
    def key(self) -> tuple[UUID, UUID]:
        return (self.user_id, self.course_id)

    def snapshot(self) -> dict[str, object]:
        return {
            "user_id": str(self.user_id),
            "course_id": str(self.course_id),
            "status": self.status,
            "progress_percentage": self.progress_percentage,
            "completed_units": self.completed_units,
            "total_units": self.total_units,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "last_accessed_at": self.last_accessed_at,
        }
