"""PostgreSQL implementation of ContentRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from completion_service.db.tables import CourseRow, CourseSectionRow, UnitRow
from completion_service.models.content import Course, Unit


class PgContentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_course(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        if row is None:
            return None
        return Course(id=row.id, title=row.title)

    async def get_unit(self, unit_id: UUID) -> Unit | None:
        row = await self._session.get(UnitRow, unit_id)
        if row is None:
            return None
        return Unit(
            id=row.id, section_id=row.section_id, title=row.title, position=row.position
        )

    async def resolve_course_id(self, unit_id: UUID) -> UUID | None:
        stmt = (
            select(CourseSectionRow.course_id)
            .join(UnitRow, UnitRow.section_id == CourseSectionRow.id)
            .where(UnitRow.id == unit_id)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_unit_ids(self, course_id: UUID) -> set[UUID]:
        stmt = (
            select(UnitRow.id)
            .join(CourseSectionRow, UnitRow.section_id == CourseSectionRow.id)
            .where(CourseSectionRow.course_id == course_id)
        )
        return set((await self._session.execute(stmt)).scalars().all())
