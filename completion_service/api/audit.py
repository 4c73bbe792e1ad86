from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter

from completion_service.api.dependencies import Admin, Engine
from completion_service.api.errors import http_error
from completion_service.api.schemas import AuditEntryOut
from completion_service.services.errors import CompletionError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin/audit", tags=["audit"])


@router.get("", response_model=list[AuditEntryOut])
async def get_audit_history(
    principal: Admin,
    engine: Engine,
    target_user_id: UUID | None = None,
    action_type: str | None = None,
    limit: int = 50,
) -> list[AuditEntryOut]:
    logger.info("Audit history requested by user=%s", principal.subject)
    try:
        entries = await engine.get_audit_history(target_user_id, action_type, limit)
    except CompletionError as exc:
        raise http_error(exc) from None
    return [AuditEntryOut.from_domain(e) for e in entries]
