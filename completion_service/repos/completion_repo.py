from __future__ import annotations

from typing import Protocol
from uuid import UUID

from completion_service.models.completion import CompletionFact


class CompletionRepo(Protocol):
    async def get(
        self, user_id: UUID, unit_id: UUID, course_id: UUID
    ) -> CompletionFact | None: ...
    async def upsert(self, fact: CompletionFact) -> None: ...
    async def list_completed(
        self, user_id: UUID, course_id: UUID
    ) -> list[CompletionFact]: ...
    async def list_user_ids(self, course_id: UUID) -> set[UUID]: ...


class InMemoryCompletionRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID, UUID], CompletionFact] = {}

    async def get(
        self, user_id: UUID, unit_id: UUID, course_id: UUID
    ) -> CompletionFact | None:
        return self._store.get((user_id, unit_id, course_id))

    async def upsert(self, fact: CompletionFact) -> None:
        self._store[fact.key] = fact

    async def list_completed(
        self, user_id: UUID, course_id: UUID
    ) -> list[CompletionFact]:
        return [
            f
            for f in self._store.values()
            if f.user_id == user_id and f.course_id == course_id and f.completed
        ]

    async def list_user_ids(self, course_id: UUID) -> set[UUID]:
        return {f.user_id for f in self._store.values() if f.course_id == course_id}

    def snapshot(self) -> dict[tuple[UUID, UUID, UUID], CompletionFact]:
        return dict(self._store)

    def restore(self, state: dict[tuple[UUID, UUID, UUID], CompletionFact]) -> None:
        self._store = dict(state)

    def clear(self) -> None:
        self._store.clear()
