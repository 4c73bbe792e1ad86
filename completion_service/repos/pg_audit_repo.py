"""PostgreSQL implementation of AuditRepo (insert and select only)."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from completion_service.db.tables import AuditLogRow
from completion_service.models.audit import AuditEntry


class PgAuditRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(self, entry: AuditEntry) -> None:
        self._session.add(
            AuditLogRow(
                id=entry.id,
                target_user_id=entry.target_user_id,
                action_type=entry.action_type,
                performed_by=entry.performed_by,
                performed_at=entry.performed_at,
                reason=entry.reason,
                old_data=entry.old_data,
                new_data=entry.new_data,
                request_id=entry.request_id,
            )
        )
        await self._session.flush()

    async def get(self, audit_id: UUID) -> AuditEntry | None:
        row = await self._session.get(AuditLogRow, audit_id)
        if row is None:
            return None
        return _row_to_entry(row)

    async def query(
        self,
        *,
        target_user_id: UUID | None = None,
        action_type: str | None = None,
        limit: int = 50,
    ) -> list[AuditEntry]:
        stmt = select(AuditLogRow)
        if target_user_id is not None:
            stmt = stmt.where(AuditLogRow.target_user_id == target_user_id)
        if action_type is not None:
            stmt = stmt.where(AuditLogRow.action_type == action_type)
        stmt = stmt.order_by(
            AuditLogRow.performed_at.desc(), AuditLogRow.seq.desc()
        ).limit(limit)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_entry(r) for r in rows]


def _row_to_entry(row: AuditLogRow) -> AuditEntry:
    return AuditEntry(
        id=row.id,
        target_user_id=row.target_user_id,
        action_type=row.action_type,  # type: ignore[arg-type]
        performed_by=row.performed_by,
        performed_at=row.performed_at,
        reason=row.reason,
        old_data=row.old_data,
        new_data=row.new_data,
        request_id=row.request_id,
    )
