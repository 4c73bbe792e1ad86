from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class CourseAssignment:
    """Explicit enrollment of a user in a course."""

    user_id: UUID
    course_id: UUID
    assigned_at: int
    assigned_by: str | None = None  # None for self-enrollment / imports
