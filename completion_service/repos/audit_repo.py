from __future__ import annotations

from typing import Protocol
from uuid import UUID

from completion_service.models.audit import AuditEntry


class AuditRepo(Protocol):
    """Append-only.  There is deliberately no update or delete."""

    async def append(self, entry: AuditEntry) -> None: ...
    async def get(self, audit_id: UUID) -> AuditEntry | None: ...
    async def query(
        self,
        *,
        target_user_id: UUID | None = None,
        action_type: str | None = None,
        limit: int = 50,
    ) -> list[AuditEntry]: ...


class InMemoryAuditRepo:
    def __init__(self) -> None:
        self._entries: list[AuditEntry] = []

    async def append(self, entry: AuditEntry) -> None:
        if any(e.id == entry.id for e in self._entries):
            raise ValueError("audit entry already exists")
        self._entries.append(entry)

    async def get(self, audit_id: UUID) -> AuditEntry | None:
        return next((e for e in self._entries if e.id == audit_id), None)

    async def query(
        self,
        *,
        target_user_id: UUID | None = None,
        action_type: str | None = None,
        limit: int = 50,
    ) -> list[AuditEntry]:
        matches = [
            e
            for e in reversed(self._entries)
            if (target_user_id is None or e.target_user_id == target_user_id)
            and (action_type is None or e.action_type == action_type)
        ]
        # Stable sort: among equal timestamps the newest append stays first.
        matches.sort(key=lambda e: e.performed_at, reverse=True)
        return matches[:limit]

    def snapshot(self) -> list[AuditEntry]:
        return list(self._entries)

    def restore(self, state: list[AuditEntry]) -> None:
        self._entries = list(state)

    def clear(self) -> None:
        self._entries.clear()
