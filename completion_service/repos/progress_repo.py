from __future__ import annotations

from typing import Protocol
from uuid import UUID

from completion_service.models.progress import CourseProgress


class ProgressRepo(Protocol):
    async def get(self, user_id: UUID, course_id: UUID) -> CourseProgress | None: ...
    async def upsert(self, progress: CourseProgress) -> None: ...
    async def list_by_course(self, course_id: UUID) -> list[CourseProgress]: ...


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], CourseProgress] = {}

    async def get(self, user_id: UUID, course_id: UUID) -> CourseProgress | None:
        return self._store.get((user_id, course_id))

    async def upsert(self, progress: CourseProgress) -> None:
        self._store[progress.key] = progress

    async def list_by_course(self, course_id: UUID) -> list[CourseProgress]:
        return [p for p in self._store.values() if p.course_id == course_id]

    def snapshot(self) -> dict[tuple[UUID, UUID], CourseProgress]:
        return dict(self._store)

    def restore(self, state: dict[tuple[UUID, UUID], CourseProgress]) -> None:
        self._store = dict(state)

    def clear(self) -> None:
        self._store.clear()
