"""CompletionEngine: the entry point the HTTP layer talks to.

Wires the validator, executor, aggregator, writer, audit trail and user
administration over one Store, and owns the two cross-cutting concerns
they do not: the per-(user, course) lock for non-override writes and the
progress cache, which is invalidated after every write path finishes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from completion_service.models.audit import AuditEntry
from completion_service.models.completion import CompletionFact
from completion_service.models.progress import CourseProgress, percentage, status_for
from completion_service.repos.store import Store
from completion_service.services.aggregator import ProgressAggregator
from completion_service.services.audit import AuditTrail, require_reason
from completion_service.services.clock import Clock, utc_now
from completion_service.services.errors import (
    CompletionError,
    NotFoundError,
    ValidationError,
)
from completion_service.services.executor import OverrideExecutor, OverrideResult
from completion_service.services.locks import LockManager, lock_manager
from completion_service.services.progress_cache import ProgressCache, progress_cache
from completion_service.services.user_admin import UserAdministration
from completion_service.services.validator import (
    UNIT_COURSE_MISMATCH,
    OverrideValidator,
    OverrideVerdict,
)
from completion_service.services.writer import ProgressWriter

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OverrideRequest:
    user_id: UUID
    unit_id: UUID
    course_id: UUID


@dataclass(frozen=True, slots=True)
class BulkItemResult:
    request: OverrideRequest
    success: bool
    audit_id: UUID | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class BulkOverrideReport:
    results: list[BulkItemResult]
    completed: int
    failed: int
    affected_users: int
    errors: list[str]


@dataclass(frozen=True, slots=True)
class ProgressChange:
    user_id: UUID
    old_percentage: int | None
    new_percentage: int
    old_status: str | None
    new_status: str


@dataclass(frozen=True, slots=True)
class CourseRecalculationReport:
    course_id: UUID
    processed: int
    changes: list[ProgressChange]


@dataclass(frozen=True, slots=True)
class IntegrityFinding:
    user_id: UUID
    stored_percentage: int
    derived_percentage: int
    stored_status: str
    problems: list[str]


@dataclass(frozen=True, slots=True)
class CourseIntegrityReport:
    course_id: UUID
    total_records: int
    inconsistent_records: int
    health_score: int
    findings: list[IntegrityFinding]


class CompletionEngine:
    def __init__(
        self,
        store: Store,
        *,
        locks: LockManager = lock_manager,
        cache: ProgressCache = progress_cache,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._locks = locks
        self._cache = cache
        self._clock = clock
        self._validator = OverrideValidator(store)
        self._executor = OverrideExecutor(store, locks=locks, clock=clock)
        self._aggregator = ProgressAggregator(store)
        self._writer = ProgressWriter(store, clock=clock)
        self._audit = AuditTrail(store)
        self.users = UserAdministration(store, clock=clock)

    # --- overrides ---

    async def request_override(
        self,
        user_id: UUID,
        unit_id: UUID,
        course_id: UUID,
        reason: str,
        performed_by: str,
    ) -> OverrideResult:
        result = await self._executor.execute(
            user_id, unit_id, course_id, reason, performed_by
        )
        await self._cache.invalidate(user_id, course_id)
        return result

    async def validate_override(
        self, user_id: UUID, unit_id: UUID, course_id: UUID
    ) -> OverrideVerdict:
        return await self._validator.validate(user_id, unit_id, course_id)

    async def bulk_override(
        self, items: list[OverrideRequest], reason: str, performed_by: str
    ) -> BulkOverrideReport:
        """Run each override on its own; one failure does not stop the rest."""
        reason = require_reason(reason)
        results: list[BulkItemResult] = []
        errors: list[str] = []
        affected: set[UUID] = set()

        for item in items:
            try:
                outcome = await self.request_override(
                    item.user_id, item.unit_id, item.course_id, reason, performed_by
                )
            except CompletionError as exc:
                errors.append(f"user {item.user_id} unit {item.unit_id}: {exc.message}")
                results.append(
                    BulkItemResult(request=item, success=False, error=exc.message)
                )
                continue
            affected.add(item.user_id)
            results.append(
                BulkItemResult(
                    request=item,
                    success=True,
                    audit_id=outcome.audit_id,
                    warnings=outcome.warnings,
                )
            )

        completed = sum(1 for r in results if r.success)
        logger.info(
            "Bulk override by %s: %d completed, %d failed",
            performed_by,
            completed,
            len(results) - completed,
        )
        return BulkOverrideReport(
            results=results,
            completed=completed,
            failed=len(results) - completed,
            affected_users=len(affected),
            errors=errors,
        )

    # --- learner-driven completion ---

    async def record_natural_completion(
        self, user_id: UUID, unit_id: UUID, course_id: UUID
    ) -> CourseProgress:
        """Mark a unit completed by the learner and roll it up.  Not audited."""
        async with self._locks.hold(user_id, course_id):
            async with self._store.transaction():
                await self._store.lock_pair(user_id, course_id)
                if await self._store.content.get_unit(unit_id) is None:
                    raise NotFoundError("unit does not exist")
                if await self._store.content.resolve_course_id(unit_id) != course_id:
                    raise ValidationError([UNIT_COURSE_MISMATCH])
                if await self._store.users.get_by_id(user_id) is None:
                    raise NotFoundError("user does not exist")

                existing = await self._store.completions.get(
                    user_id, unit_id, course_id
                )
                # A repeat completion keeps the original method and time.
                if existing is None or not existing.completed:
                    await self._store.completions.upsert(
                        CompletionFact(
                            user_id=user_id,
                            unit_id=unit_id,
                            course_id=course_id,
                            completed=True,
                            completion_method="natural",
                            completed_at=self._clock(),
                        )
                    )
                progress = await self._writer.commit(
                    await self._aggregator.recalculate(user_id, course_id)
                )

        await self._cache.invalidate(user_id, course_id)
        logger.info(
            "Unit %s completed by user %s (%d%%)",
            unit_id,
            user_id,
            progress.progress_percentage,
            extra={
                "user_id": str(user_id),
                "course_id": str(course_id),
                "unit_id": str(unit_id),
            },
        )
        return progress

    # --- reads ---

    async def get_progress(self, user_id: UUID, course_id: UUID) -> CourseProgress:
        """Stored progress (cached), or an uncommitted aggregate if none is stored."""
        cached = await self._cache.get(user_id, course_id)
        if cached is not None:
            return cached

        stored = await self._store.progress.get(user_id, course_id)
        if stored is not None:
            await self._cache.put(stored)
            return stored
        return await self._aggregator.recalculate(user_id, course_id)

    async def get_audit_history(
        self,
        target_user_id: UUID | None = None,
        action_type: str | None = None,
        limit: int = 50,
    ) -> list[AuditEntry]:
        return await self._audit.query(
            target_user_id=target_user_id, action_type=action_type, limit=limit
        )

    # --- course maintenance ---

    async def recalculate_course(self, course_id: UUID) -> CourseRecalculationReport:
        """Recompute and commit every learner's progress in a course."""
        if await self._store.content.get_course(course_id) is None:
            raise NotFoundError("course does not exist")

        user_ids = await self._store.completions.list_user_ids(course_id)
        user_ids |= {p.user_id for p in await self._store.progress.list_by_course(course_id)}

        changes: list[ProgressChange] = []
        for user_id in sorted(user_ids, key=str):
            async with self._locks.hold(user_id, course_id):
                async with self._store.transaction():
                    await self._store.lock_pair(user_id, course_id)
                    before = await self._store.progress.get(user_id, course_id)
                    after = await self._writer.commit(
                        await self._aggregator.recalculate(user_id, course_id)
                    )
            await self._cache.invalidate(user_id, course_id)

            if (
                before is None
                or before.progress_percentage != after.progress_percentage
                or before.status != after.status
            ):
                changes.append(
                    ProgressChange(
                        user_id=user_id,
                        old_percentage=before.progress_percentage if before else None,
                        new_percentage=after.progress_percentage,
                        old_status=before.status if before else None,
                        new_status=after.status,
                    )
                )

        logger.info(
            "Recalculated course %s: %d record(s), %d changed",
            course_id,
            len(user_ids),
            len(changes),
            extra={"course_id": str(course_id)},
        )
        return CourseRecalculationReport(
            course_id=course_id, processed=len(user_ids), changes=changes
        )

    async def diagnose_course(self, course_id: UUID) -> CourseIntegrityReport:
        """Compare stored progress with freshly derived values.  Read-only."""
        if await self._store.content.get_course(course_id) is None:
            raise NotFoundError("course does not exist")

        records = await self._store.progress.list_by_course(course_id)
        findings: list[IntegrityFinding] = []
        for stored in sorted(records, key=lambda p: str(p.user_id)):
            derived = await self._aggregator.recalculate(stored.user_id, course_id)
            problems = []
            if not 0 <= stored.progress_percentage <= 100:
                problems.append("percentage out of range")
            if stored.progress_percentage != derived.progress_percentage:
                problems.append(
                    f"stored {stored.progress_percentage}% differs from "
                    f"derived {derived.progress_percentage}%"
                )
            if stored.status != status_for(stored.progress_percentage):
                problems.append(
                    f"status {stored.status} inconsistent with "
                    f"{stored.progress_percentage}%"
                )
            if stored.status == "completed" and derived.progress_percentage < 100:
                problems.append("completed but not all units are completed")
            if problems:
                findings.append(
                    IntegrityFinding(
                        user_id=stored.user_id,
                        stored_percentage=stored.progress_percentage,
                        derived_percentage=derived.progress_percentage,
                        stored_status=stored.status,
                        problems=problems,
                    )
                )

        total = len(records)
        health = 100 - percentage(len(findings), total) if total else 100
        return CourseIntegrityReport(
            course_id=course_id,
            total_records=total,
            inconsistent_records=len(findings),
            health_score=health,
            findings=findings,
        )
