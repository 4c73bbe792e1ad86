"""PostgreSQL implementations of CompletionRepo and ProgressRepo.

Both tables are written with INSERT ... ON CONFLICT DO UPDATE so a write
is a single statement keyed on the natural primary key.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from completion_service.db.tables import CourseProgressRow, UnitCompletionRow
from completion_service.models.completion import CompletionFact
from completion_service.models.progress import CourseProgress


class PgCompletionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(
        self, user_id: UUID, unit_id: UUID, course_id: UUID
    ) -> CompletionFact | None:
        stmt = select(UnitCompletionRow).where(
            UnitCompletionRow.user_id == user_id,
            UnitCompletionRow.unit_id == unit_id,
            UnitCompletionRow.course_id == course_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_fact(row)

    async def upsert(self, fact: CompletionFact) -> None:
        stmt = insert(UnitCompletionRow).values(
            user_id=fact.user_id,
            unit_id=fact.unit_id,
            course_id=fact.course_id,
            completed=fact.completed,
            completion_method=fact.completion_method,
            completed_at=fact.completed_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "unit_id", "course_id"],
            set_={
                "completed": stmt.excluded.completed,
                "completion_method": stmt.excluded.completion_method,
                "completed_at": stmt.excluded.completed_at,
            },
        )
        await self._session.execute(stmt)

    async def list_completed(
        self, user_id: UUID, course_id: UUID
    ) -> list[CompletionFact]:
        stmt = select(UnitCompletionRow).where(
            UnitCompletionRow.user_id == user_id,
            UnitCompletionRow.course_id == course_id,
            UnitCompletionRow.completed.is_(True),
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_fact(r) for r in rows]

    async def list_user_ids(self, course_id: UUID) -> set[UUID]:
        stmt = (
            select(UnitCompletionRow.user_id)
            .where(UnitCompletionRow.course_id == course_id)
            .distinct()
        )
        return set((await self._session.execute(stmt)).scalars().all())


class PgProgressRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: UUID, course_id: UUID) -> CourseProgress | None:
        row = await self._session.get(
            CourseProgressRow, (user_id, course_id), populate_existing=True
        )
        if row is None:
            return None
        return _row_to_progress(row)

    async def upsert(self, progress: CourseProgress) -> None:
        values = {
            "status": progress.status,
            "progress_percentage": progress.progress_percentage,
            "completed_units": progress.completed_units,
            "total_units": progress.total_units,
            "started_at": progress.started_at,
            "completed_at": progress.completed_at,
            "last_accessed_at": progress.last_accessed_at,
        }
        stmt = insert(CourseProgressRow).values(
            user_id=progress.user_id, course_id=progress.course_id, **values
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "course_id"],
            set_=values,
        )
        await self._session.execute(stmt)

    async def list_by_course(self, course_id: UUID) -> list[CourseProgress]:
        stmt = select(CourseProgressRow).where(CourseProgressRow.course_id == course_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_progress(r) for r in rows]


def _row_to_fact(row: UnitCompletionRow) -> CompletionFact:
    return CompletionFact(
        user_id=row.user_id,
        unit_id=row.unit_id,
        course_id=row.course_id,
        completed=row.completed,
        completion_method=row.completion_method,  # type: ignore[arg-type]
        completed_at=row.completed_at,
    )


def _row_to_progress(row: CourseProgressRow) -> CourseProgress:
    return CourseProgress(
        user_id=row.user_id,
        course_id=row.course_id,
        status=row.status,  # type: ignore[arg-type]
        progress_percentage=row.progress_percentage,
        completed_units=row.completed_units,
        total_units=row.total_units,
        started_at=row.started_at,
        completed_at=row.completed_at,
        last_accessed_at=row.last_accessed_at,
    )
