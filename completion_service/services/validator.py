"""Override validation: blocking issues vs. non-blocking warnings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from completion_service.repos.store import Store

logger = logging.getLogger(__name__)

UNIT_MISSING = "unit does not exist"
UNIT_COURSE_MISMATCH = "unit does not belong to course"
USER_MISSING = "user does not exist"
USER_DEACTIVATED = "user is deactivated"
NOT_ENROLLED = "user is not assigned to this course; enrollment will be bootstrapped"


@dataclass(frozen=True, slots=True)
class OverrideVerdict:
    is_valid: bool
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class OverrideValidator:
    """Checks a proposed override without writing anything.

    Checks run in order and stop early when the unit or the user is missing,
    since the later checks have nothing to look at:

      1. the unit exists and resolves to course_id
      2. the user exists (deactivated users only warn)
      3. an assignment or a progress record exists (absence only warns)
      4. the unit is not already completed (re-overriding only warns)
    """

    def __init__(self, store: Store) -> None:
        self._store = store

    async def validate(
        self, user_id: UUID, unit_id: UUID, course_id: UUID
    ) -> OverrideVerdict:
        issues: list[str] = []
        warnings: list[str] = []

        unit = await self._store.content.get_unit(unit_id)
        if unit is None:
            return self._verdict([UNIT_MISSING], warnings)
        resolved = await self._store.content.resolve_course_id(unit_id)
        if resolved != course_id:
            issues.append(UNIT_COURSE_MISMATCH)

        user = await self._store.users.get_by_id(user_id)
        if user is None:
            issues.append(USER_MISSING)
            return self._verdict(issues, warnings)
        if user.is_deleted:
            warnings.append(USER_DEACTIVATED)

        assignment = await self._store.assignments.get(user_id, course_id)
        progress = await self._store.progress.get(user_id, course_id)
        if assignment is None and progress is None:
            warnings.append(NOT_ENROLLED)

        fact = await self._store.completions.get(user_id, unit_id, course_id)
        if fact is not None and fact.completed:
            warnings.append(f"unit already completed via {fact.completion_method}")

        return self._verdict(issues, warnings)

    @staticmethod
    def _verdict(issues: list[str], warnings: list[str]) -> OverrideVerdict:
        if issues:
            logger.info("Override rejected: %s", "; ".join(issues))
        return OverrideVerdict(is_valid=not issues, issues=issues, warnings=warnings)
