from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    title: str

    @staticmethod
    def new(*, title: str) -> Course:
        return Course(id=uuid4(), title=title)


@dataclass(frozen=True, slots=True)
class Section:
    """Grouping entity between a course and its units."""

    id: UUID
    course_id: UUID
    title: str
    position: int = 0

    @staticmethod
    def new(*, course_id: UUID, title: str, position: int = 0) -> Section:
        return Section(id=uuid4(), course_id=course_id, title=title, position=position)


@dataclass(frozen=True, slots=True)
class Unit:
    """Smallest completable content item.  Belongs to a course via its section."""

    id: UUID
    section_id: UUID
    title: str
    position: int = 0

    @staticmethod
    def new(*, section_id: UUID, title: str, position: int = 0) -> Unit:
        return Unit(id=uuid4(), section_id=section_id, title=title, position=position)
