"""Audited user administration endpoints (admin only).

Every action requires a reason and appends an audit entry in the same
transaction as the user change.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel

from completion_service.api.dependencies import Admin, Engine
from completion_service.api.errors import http_error
from completion_service.services.errors import CompletionError
from completion_service.services.user_admin import UserAdminResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin/users", tags=["admin"])


class ReasonIn(BaseModel):
    reason: str


class RoleChangeIn(ReasonIn):
    role: str


class UserOut(BaseModel):
    id: UUID
    email: str
    role: str
    is_deleted: bool


class UserAdminOut(BaseModel):
    user: UserOut
    audit_id: UUID


def _out(result: UserAdminResult) -> UserAdminOut:
    u = result.user
    return UserAdminOut(
        user=UserOut(id=u.id, email=u.email, role=u.role, is_deleted=u.is_deleted),
        audit_id=result.audit_id,
    )


@router.patch("/{user_id}/role", response_model=UserAdminOut)
async def change_role(
    user_id: UUID,
    body: RoleChangeIn,
    principal: Admin,
    engine: Engine,
) -> UserAdminOut:
    try:
        result = await engine.users.change_role(
            user_id, body.role, body.reason, principal.subject
        )
    except CompletionError as exc:
        raise http_error(exc) from None
    return _out(result)


@router.post("/{user_id}/deactivate", response_model=UserAdminOut)
async def deactivate_user(
    user_id: UUID,
    body: ReasonIn,
    principal: Admin,
    engine: Engine,
) -> UserAdminOut:
    try:
        result = await engine.users.deactivate(user_id, body.reason, principal.subject)
    except CompletionError as exc:
        raise http_error(exc) from None
    return _out(result)


@router.post("/{user_id}/restore", response_model=UserAdminOut)
async def restore_user(
    user_id: UUID,
    body: ReasonIn,
    principal: Admin,
    engine: Engine,
) -> UserAdminOut:
    try:
        result = await engine.users.restore(user_id, body.reason, principal.subject)
    except CompletionError as exc:
        raise http_error(exc) from None
    return _out(result)
