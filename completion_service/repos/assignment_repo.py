from __future__ import annotations

from typing import Protocol
from uuid import UUID

from completion_service.models.assignment import CourseAssignment


class AssignmentRepo(Protocol):
    async def get(self, user_id: UUID, course_id: UUID) -> CourseAssignment | None: ...
    async def add(self, assignment: CourseAssignment) -> None: ...


class InMemoryAssignmentRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], CourseAssignment] = {}

    async def get(self, user_id: UUID, course_id: UUID) -> CourseAssignment | None:
        return self._store.get((user_id, course_id))

    async def add(self, assignment: CourseAssignment) -> None:
        key = (assignment.user_id, assignment.course_id)
        if key in self._store:
            raise ValueError("assignment already exists")
        self._store[key] = assignment

    def snapshot(self) -> dict[tuple[UUID, UUID], CourseAssignment]:
        return dict(self._store)

    def restore(self, state: dict[tuple[UUID, UUID], CourseAssignment]) -> None:
        self._store = dict(state)

    def clear(self) -> None:
        self._store.clear()
