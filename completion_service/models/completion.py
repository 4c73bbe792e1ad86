from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from uuid import UUID

CompletionMethod = Literal["natural", "admin_override"]


@dataclass(frozen=True, slots=True)
class CompletionFact:
    """Whether one user completed one unit of one course, and how.

    Unique on (user_id, unit_id, course_id).  Later writes overwrite earlier
    ones; facts are never deleted.
    """

    user_id: UUID
    unit_id: UUID
    course_id: UUID
    completed: bool
    completion_method: CompletionMethod = "natural"
    completed_at: int | None = None

    @property
    def key(self) -> tuple[UUID, UUID, UUID]:
        return (self.user_id, self.unit_id, self.course_id)

    def snapshot(self) -> dict[str, object]:
        return {
            "user_id": str(self.user_id),
            "unit_id": str(self.unit_id),
            "course_id": str(self.course_id),
            "completed": self.completed,
            "completion_method": self.completion_method,
            "completed_at": self.completed_at,
        }
