from __future__ import annotations

import asyncio
from dataclasses import dataclass
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from completion_service.api.dependencies import memory_store
from completion_service.main import app
from completion_service.models.content import Course, Section, Unit
from completion_service.models.user import User, UserRole
from completion_service.repos.store import InMemoryStore
from completion_service.services import token_service
from completion_service.services.locks import InMemoryLockManager, lock_manager
from completion_service.services.progress_cache import (
    InMemoryCacheService,
    cache_service,
)


@pytest.fixture(autouse=True)
def reset_memory_store() -> None:
    """Clear the shared in-memory store between tests."""
    memory_store.clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if isinstance(cache_service, InMemoryCacheService):
        cache_service.clear()


@pytest.fixture(autouse=True)
def reset_locks() -> None:
    # asyncio.Lock binds to the loop it first waits on; every asyncio.run()
    # in a test gets a fresh loop.
    if isinstance(lock_manager, InMemoryLockManager):
        lock_manager.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.issue_access_token(username, roles)


@pytest.fixture
def admin_token() -> str:
    return mint_token(username="test-admin", roles=["admin"])


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------


@dataclass
class SeededCourse:
    course: Course
    section: Section
    units: list[Unit]


def seed_course(
    store: InMemoryStore, *, units: int = 4, title: str = "Course"
) -> SeededCourse:
    """Create a course with one section holding *units* units."""
    course = Course.new(title=title)
    section = Section.new(course_id=course.id, title=f"{title} section")
    store.content.add_course(course)
    store.content.add_section(section)
    created = []
    for i in range(units):
        unit = Unit.new(section_id=section.id, title=f"{title} unit {i}", position=i)
        store.content.add_unit(unit)
        created.append(unit)
    return SeededCourse(course=course, section=section, units=created)


def seed_user(
    store: InMemoryStore, *, email: str | None = None, role: UserRole = "student"
) -> User:
    user = User.new(email=email or f"{uuid4()}@example.com", role=role)
    asyncio.run(store.users.add(user))
    return user


@pytest.fixture
def store() -> InMemoryStore:
    """A private store for service-level tests."""
    return InMemoryStore()


class FakeClock:
    """Injectable clock; advance by assigning to .now."""

    def __init__(self, now: int = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now
