"""Append-only audit trail for administrative mutations.

There is no update or delete here, and none in the repositories below it.
An entry is the only record of why an administrative change happened, so
every write path that changes identity or completion state on behalf of
an admin appends one inside the same transaction as the change itself.
"""

from __future__ import annotations

import dataclasses
import logging
from uuid import UUID

from completion_service.core.config import SETTINGS
from completion_service.core.metrics import AUDIT_ENTRIES
from completion_service.middleware.request_context import request_id_var
from completion_service.models.audit import AUDIT_ACTIONS, AuditEntry
from completion_service.repos.store import Store
from completion_service.services.errors import ValidationError

logger = logging.getLogger(__name__)

REASON_REQUIRED = "reason is required"


def require_reason(reason: str | None) -> str:
    """Return the trimmed reason, or raise ValidationError when it is blank."""
    if reason is None or not reason.strip():
        raise ValidationError([REASON_REQUIRED])
    return reason.strip()


class AuditTrail:
    def __init__(self, store: Store, *, max_limit: int | None = None) -> None:
        self._store = store
        self._max_limit = max_limit or SETTINGS.audit_query_max_limit

    async def append(self, entry: AuditEntry) -> UUID:
        require_reason(entry.reason)
        if entry.request_id is None:
            req_id = request_id_var.get("-")
            if req_id != "-":
                entry = dataclasses.replace(entry, request_id=req_id)

        await self._store.audit.append(entry)
        AUDIT_ENTRIES.labels(action_type=entry.action_type).inc()
        logger.info(
            "Audit %s on user %s by %s",
            entry.action_type,
            entry.target_user_id,
            entry.performed_by,
            extra={
                "audit_id": str(entry.id),
                "user_id": str(entry.target_user_id),
                "performed_by": entry.performed_by,
            },
        )
        return entry.id

    async def query(
        self,
        *,
        target_user_id: UUID | None = None,
        action_type: str | None = None,
        limit: int = 50,
    ) -> list[AuditEntry]:
        """Newest first; ties on performed_at go to the later append."""
        issues = []
        if not 1 <= limit <= self._max_limit:
            issues.append(f"limit must be between 1 and {self._max_limit}")
        if action_type is not None and action_type not in AUDIT_ACTIONS:
            issues.append(f"unknown action_type: {action_type}")
        if issues:
            raise ValidationError(issues)

        return await self._store.audit.query(
            target_user_id=target_user_id, action_type=action_type, limit=limit
        )
