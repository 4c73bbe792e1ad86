from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal
from uuid import UUID, uuid4

AuditAction = Literal["role_change", "soft_delete", "restore", "unit_override"]

AUDIT_ACTIONS: frozenset[str] = frozenset(
    {"role_change", "soft_delete", "restore", "unit_override"}
)


@dataclass(frozen=True, slots=True)
class AuditEntry:
    """Immutable record of one administrative mutation.

    old_data / new_data hold enough of the prior and resulting state for a
    person to reconcile by hand; nothing replays them automatically.
    """

    id: UUID
    target_user_id: UUID
    action_type: AuditAction
    performed_by: str
    performed_at: int
    reason: str
    old_data: dict[str, Any] | None = None
    new_data: dict[str, Any] | None = None
    request_id: str | None = None

    @staticmethod
    def new(
        *,
        target_user_id: UUID,
        action_type: AuditAction,
        performed_by: str,
        performed_at: int,
        reason: str,
        old_data: dict[str, Any] | None = None,
        new_data: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> AuditEntry:
        return AuditEntry(
            id=uuid4(),
            target_user_id=target_user_id,
            action_type=action_type,
            performed_by=performed_by,
            performed_at=performed_at,
            reason=reason,
            old_data=old_data,
            new_data=new_data,
            request_id=request_id,
        )
