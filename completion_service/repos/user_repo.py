from __future__ import annotations

from typing import Protocol
from uuid import UUID

from completion_service.models.user import User


class UserRepo(Protocol):
    async def get_by_id(self, user_id: UUID) -> User | None: ...
    async def add(self, user: User) -> None: ...
    async def update(self, user: User) -> None: ...


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, User] = {}

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._by_id.get(user_id)

    async def add(self, user: User) -> None:
        if user.id in self._by_id:
            raise ValueError("user already exists")
        self._by_id[user.id] = user

    async def update(self, user: User) -> None:
        if user.id not in self._by_id:
            raise KeyError("user not found")
        self._by_id[user.id] = user

    def snapshot(self) -> dict[UUID, User]:
        return dict(self._by_id)

    def restore(self, state: dict[UUID, User]) -> None:
        self._by_id = dict(state)

    def clear(self) -> None:
        self._by_id.clear()
