from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from uuid import UUID, uuid4

UserRole = Literal["admin", "owner", "student", "client", "free"]

USER_ROLES: frozenset[str] = frozenset({"admin", "owner", "student", "client", "free"})


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    email: str
    role: UserRole = "student"
    is_deleted: bool = False  # soft delete; the row is never removed

    @staticmethod
    def new(*, email: str, role: UserRole = "student") -> User:
        return User(id=uuid4(), email=email.strip().lower(), role=role)

    def snapshot(self) -> dict[str, object]:
        return {
            "id": str(self.id),
            "email": self.email,
            "role": self.role,
            "is_deleted": self.is_deleted,
        }
