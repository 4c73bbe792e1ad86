"""Administrative unit override: validate, write, roll up, audit.

One override is one critical section and one transaction:

    lock(user, course)
      transaction                     (committed before the lock is released)
        lock_pair(user, course)       (advisory lock on PostgreSQL)
        validate                      -> ValidationError, nothing written
        re-resolve unit's course      -> IntegrityError
        bootstrap CourseAssignment    (only if no assignment and no progress)
        upsert CompletionFact         (completed, admin_override, now)
        recalculate + commit progress
        append AuditEntry             (failure rolls back everything above)

The executor never retries; the caller decides what to do with the error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from completion_service.core.metrics import UNIT_OVERRIDES
from completion_service.models.assignment import CourseAssignment
from completion_service.models.audit import AuditEntry
from completion_service.models.completion import CompletionFact
from completion_service.models.progress import CourseProgress
from completion_service.repos.store import Store
from completion_service.services.aggregator import ProgressAggregator
from completion_service.services.audit import AuditTrail, require_reason
from completion_service.services.clock import Clock, utc_now
from completion_service.services.errors import (
    IntegrityError,
    PersistenceError,
    ValidationError,
)
from completion_service.services.locks import LockManager
from completion_service.services.validator import OverrideValidator
from completion_service.services.writer import ProgressWriter

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OverrideResult:
    success: bool
    audit_id: UUID
    progress: CourseProgress
    warnings: list[str] = field(default_factory=list)


class OverrideExecutor:
    def __init__(
        self,
        store: Store,
        *,
        locks: LockManager,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._locks = locks
        self._clock = clock
        self._validator = OverrideValidator(store)
        self._aggregator = ProgressAggregator(store)
        self._writer = ProgressWriter(store, clock=clock)
        self._audit = AuditTrail(store)

    async def execute(
        self,
        user_id: UUID,
        unit_id: UUID,
        course_id: UUID,
        reason: str,
        performed_by: str,
    ) -> OverrideResult:
        try:
            reason = require_reason(reason)
            async with self._locks.hold(user_id, course_id):
                async with self._store.transaction():
                    result = await self._apply(
                        user_id, unit_id, course_id, reason, performed_by
                    )
        except ValidationError:
            UNIT_OVERRIDES.labels(result="rejected").inc()
            raise
        except IntegrityError:
            UNIT_OVERRIDES.labels(result="integrity_error").inc()
            logger.warning(
                "Override aborted: unit %s no longer in course %s", unit_id, course_id
            )
            raise
        except PersistenceError:
            UNIT_OVERRIDES.labels(result="persistence_error").inc()
            logger.error(
                "Override for user %s unit %s rolled back", user_id, unit_id
            )
            raise

        UNIT_OVERRIDES.labels(result="applied").inc()
        logger.info(
            "Unit %s overridden for user %s in course %s by %s (%d%%)",
            unit_id,
            user_id,
            course_id,
            performed_by,
            result.progress.progress_percentage,
            extra={
                "user_id": str(user_id),
                "course_id": str(course_id),
                "unit_id": str(unit_id),
                "audit_id": str(result.audit_id),
                "performed_by": performed_by,
            },
        )
        return result

    async def _apply(
        self,
        user_id: UUID,
        unit_id: UUID,
        course_id: UUID,
        reason: str,
        performed_by: str,
    ) -> OverrideResult:
        await self._store.lock_pair(user_id, course_id)
        verdict = await self._validator.validate(user_id, unit_id, course_id)
        if not verdict.is_valid:
            raise ValidationError(verdict.issues)

        # The content hierarchy is owned elsewhere and may have changed
        # since validation read it.
        if await self._store.content.resolve_course_id(unit_id) != course_id:
            raise IntegrityError("unit no longer belongs to course")

        now = self._clock()
        prior_fact = await self._store.completions.get(user_id, unit_id, course_id)
        prior_progress = await self._store.progress.get(user_id, course_id)

        bootstrapped = False
        if prior_progress is None:
            if await self._store.assignments.get(user_id, course_id) is None:
                await self._store.assignments.add(
                    CourseAssignment(
                        user_id=user_id,
                        course_id=course_id,
                        assigned_at=now,
                        assigned_by=performed_by,
                    )
                )
                bootstrapped = True

        fact = CompletionFact(
            user_id=user_id,
            unit_id=unit_id,
            course_id=course_id,
            completed=True,
            completion_method="admin_override",
            completed_at=now,
        )
        await self._store.completions.upsert(fact)

        progress = await self._writer.commit(
            await self._aggregator.recalculate(user_id, course_id)
        )

        entry = AuditEntry.new(
            target_user_id=user_id,
            action_type="unit_override",
            performed_by=performed_by,
            performed_at=now,
            reason=reason,
            old_data={
                "completion": prior_fact.snapshot() if prior_fact else None,
                "progress": prior_progress.snapshot() if prior_progress else None,
            },
            new_data={
                "completion": fact.snapshot(),
                "progress": progress.snapshot(),
                "enrollment_bootstrapped": bootstrapped,
            },
        )
        audit_id = await self._audit.append(entry)

        return OverrideResult(
            success=True,
            audit_id=audit_id,
            progress=progress,
            warnings=list(verdict.warnings),
        )
