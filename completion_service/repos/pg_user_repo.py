"""PostgreSQL implementations of UserRepo and AssignmentRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from completion_service.db.tables import CourseAssignmentRow, UserRow
from completion_service.models.assignment import CourseAssignment
from completion_service.models.user import User


class PgUserRepo:
    """Satisfies the UserRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: UUID) -> User | None:
        stmt = select(UserRow).where(UserRow.id == user_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_user(row)

    async def add(self, user: User) -> None:
        row = UserRow(
            id=user.id,
            email=user.email,
            role=user.role,
            is_deleted=user.is_deleted,
        )
        self._session.add(row)
        await self._session.flush()

    async def update(self, user: User) -> None:
        stmt = (
            update(UserRow)
            .where(UserRow.id == user.id)
            .values(email=user.email, role=user.role, is_deleted=user.is_deleted)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("user not found")


class PgAssignmentRepo:
    """Satisfies the AssignmentRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: UUID, course_id: UUID) -> CourseAssignment | None:
        row = await self._session.get(CourseAssignmentRow, (user_id, course_id))
        if row is None:
            return None
        return CourseAssignment(
            user_id=row.user_id,
            course_id=row.course_id,
            assigned_at=row.assigned_at,
            assigned_by=row.assigned_by,
        )

    async def add(self, assignment: CourseAssignment) -> None:
        self._session.add(
            CourseAssignmentRow(
                user_id=assignment.user_id,
                course_id=assignment.course_id,
                assigned_at=assignment.assigned_at,
                assigned_by=assignment.assigned_by,
            )
        )
        await self._session.flush()


def _row_to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        email=row.email,
        role=row.role,  # type: ignore[arg-type]
        is_deleted=row.is_deleted,
    )
