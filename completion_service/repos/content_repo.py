from __future__ import annotations

from typing import Protocol
from uuid import UUID

from completion_service.models.content import Course, Section, Unit


class ContentRepo(Protocol):
    """Read-only view of the course -> section -> unit hierarchy."""

    async def get_course(self, course_id: UUID) -> Course | None: ...
    async def get_unit(self, unit_id: UUID) -> Unit | None: ...
    async def resolve_course_id(self, unit_id: UUID) -> UUID | None: ...
    async def list_unit_ids(self, course_id: UUID) -> set[UUID]: ...


class InMemoryContentRepo:
    """Content hierarchy held in dicts.

    The add_* / move_unit / remove_unit helpers stand in for the content
    management screens; the engine itself only reads.
    """

    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._sections: dict[UUID, Section] = {}
        self._units: dict[UUID, Unit] = {}

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def get_unit(self, unit_id: UUID) -> Unit | None:
        return self._units.get(unit_id)

    async def resolve_course_id(self, unit_id: UUID) -> UUID | None:
        unit = self._units.get(unit_id)
        if unit is None:
            return None
        section = self._sections.get(unit.section_id)
        return section.course_id if section is not None else None

    async def list_unit_ids(self, course_id: UUID) -> set[UUID]:
        section_ids = {s.id for s in self._sections.values() if s.course_id == course_id}
        return {u.id for u in self._units.values() if u.section_id in section_ids}

    def add_course(self, course: Course) -> None:
        self._courses[course.id] = course

    def add_section(self, section: Section) -> None:
        if section.course_id not in self._courses:
            raise KeyError("course not found")
        self._sections[section.id] = section

    def add_unit(self, unit: Unit) -> None:
        if unit.section_id not in self._sections:
            raise KeyError("section not found")
        self._units[unit.id] = unit

    def move_unit(self, unit_id: UUID, section_id: UUID) -> None:
        unit = self._units[unit_id]
        if section_id not in self._sections:
            raise KeyError("section not found")
        self._units[unit_id] = Unit(
            id=unit.id, section_id=section_id, title=unit.title, position=unit.position
        )

    def remove_unit(self, unit_id: UUID) -> None:
        self._units.pop(unit_id, None)

    def clear(self) -> None:
        self._courses.clear()
        self._sections.clear()
        self._units.clear()
