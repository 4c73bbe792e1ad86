"""Audited user administration: role changes, deactivation, restoration.

Each action writes the user and its audit entry in one transaction, with
the user snapshot before and after as old_data / new_data.  Users are soft
deleted only; nothing here removes a row.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from uuid import UUID

from completion_service.models.audit import AuditAction, AuditEntry
from completion_service.models.user import USER_ROLES, User
from completion_service.repos.store import Store
from completion_service.services.audit import AuditTrail, require_reason
from completion_service.services.clock import Clock, utc_now
from completion_service.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UserAdminResult:
    user: User
    audit_id: UUID


class UserAdministration:
    def __init__(self, store: Store, *, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock
        self._audit = AuditTrail(store)

    async def change_role(
        self, user_id: UUID, new_role: str, reason: str, performed_by: str
    ) -> UserAdminResult:
        reason = require_reason(reason)
        if new_role not in USER_ROLES:
            raise ValidationError([f"unknown role: {new_role}"])

        async with self._store.transaction():
            user = await self._load(user_id)
            if user.role == new_role:
                raise ValidationError([f"user already has role {new_role}"])
            updated = dataclasses.replace(user, role=new_role)
            return await self._save(user, updated, "role_change", reason, performed_by)

    async def deactivate(
        self, user_id: UUID, reason: str, performed_by: str
    ) -> UserAdminResult:
        reason = require_reason(reason)
        async with self._store.transaction():
            user = await self._load(user_id)
            if user.is_deleted:
                raise ValidationError(["user is already deactivated"])
            updated = dataclasses.replace(user, is_deleted=True)
            return await self._save(user, updated, "soft_delete", reason, performed_by)

    async def restore(
        self, user_id: UUID, reason: str, performed_by: str
    ) -> UserAdminResult:
        reason = require_reason(reason)
        async with self._store.transaction():
            user = await self._load(user_id)
            if not user.is_deleted:
                raise ValidationError(["user is not deactivated"])
            updated = dataclasses.replace(user, is_deleted=False)
            return await self._save(user, updated, "restore", reason, performed_by)

    async def _load(self, user_id: UUID) -> User:
        user = await self._store.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("user does not exist")
        return user

    async def _save(
        self,
        before: User,
        after: User,
        action: AuditAction,
        reason: str,
        performed_by: str,
    ) -> UserAdminResult:
        await self._store.users.update(after)
        audit_id = await self._audit.append(
            AuditEntry.new(
                target_user_id=after.id,
                action_type=action,
                performed_by=performed_by,
                performed_at=self._clock(),
                reason=reason,
                old_data=before.snapshot(),
                new_data=after.snapshot(),
            )
        )
        logger.info("User %s: %s by %s", after.id, action, performed_by)
        return UserAdminResult(user=after, audit_id=audit_id)
