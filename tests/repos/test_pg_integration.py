"""PgStore and the pg repos against a real PostgreSQL.

Needs a disposable database; the schema is built with the Alembic
migration and dropped again afterwards.

  docker run --rm -d -p 5433:5432 -e POSTGRES_PASSWORD=pw postgres:16
  TEST_DATABASE_URL=postgresql+asyncpg://postgres:pw@localhost:5433/postgres \
    pytest -m postgres -v
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from completion_service.db.tables import (
    CourseRow,
    CourseSectionRow,
    UnitRow,
    UserRow,
)
from completion_service.models.audit import AuditEntry
from completion_service.models.completion import CompletionFact
from completion_service.repos.store import PgStore
from completion_service.services.engine import CompletionEngine
from completion_service.services.errors import PersistenceError
from completion_service.services.locks import InMemoryLockManager
from completion_service.services.progress_cache import (
    InMemoryCacheService,
    ProgressCache,
)

PG_URL = os.environ.get("TEST_DATABASE_URL", "")
ROOT = Path(__file__).resolve().parents[2]

pytestmark = [
    pytest.mark.postgres,
    pytest.mark.skipif(not PG_URL, reason="TEST_DATABASE_URL not set"),
]


@pytest.fixture(scope="module", autouse=True)
def migrated_schema():
    cfg = Config()
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", PG_URL.replace("%", "%%"))
    command.upgrade(cfg, "head")
    yield
    command.downgrade(cfg, "base")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(scenario):
    """Run *scenario(factory)* on a fresh loop with its own connections."""

    async def main():
        engine = create_async_engine(PG_URL, poolclass=NullPool)
        factory = async_sessionmaker(engine, expire_on_commit=False)
        try:
            return await scenario(factory)
        finally:
            await engine.dispose()

    return asyncio.run(main())


async def _seed(factory, *, units: int = 2) -> tuple[UUID, UUID, list[UUID]]:
    user_id, course_id, section_id = uuid4(), uuid4(), uuid4()
    unit_ids = [uuid4() for _ in range(units)]
    async with factory() as session, session.begin():
        session.add(CourseRow(id=course_id, title="Course"))
        session.add(
            CourseSectionRow(
                id=section_id, course_id=course_id, title="Section", position=0
            )
        )
        session.add_all(
            UnitRow(id=unit_id, section_id=section_id, title=f"Unit {i}", position=i)
            for i, unit_id in enumerate(unit_ids)
        )
        session.add(
            UserRow(
                id=user_id,
                email=f"{user_id}@example.com",
                role="student",
                is_deleted=False,
            )
        )
    return user_id, course_id, unit_ids


def _engine_for(session) -> CompletionEngine:
    # A private lock manager per engine stands in for separate worker
    # processes; only the database serializes them.
    return CompletionEngine(
        PgStore(session),
        locks=InMemoryLockManager(),
        cache=ProgressCache(InMemoryCacheService(), 60),
    )


# ---------------------------------------------------------------------------
# Repos
# ---------------------------------------------------------------------------


def test_completion_upsert_overwrites_fact() -> None:
    async def scenario(factory):
        user_id, course_id, unit_ids = await _seed(factory)
        async with factory() as session:
            store = PgStore(session)
            async with store.transaction():
                await store.completions.upsert(
                    CompletionFact(
                        user_id=user_id,
                        unit_id=unit_ids[0],
                        course_id=course_id,
                        completed=False,
                    )
                )
            async with store.transaction():
                await store.completions.upsert(
                    CompletionFact(
                        user_id=user_id,
                        unit_id=unit_ids[0],
                        course_id=course_id,
                        completed=True,
                        completion_method="admin_override",
                        completed_at=1_700_000_000,
                    )
                )
        async with factory() as session:
            store = PgStore(session)
            fact = await store.completions.get(user_id, unit_ids[0], course_id)
            completed = await store.completions.list_completed(user_id, course_id)
        return fact, completed

    fact, completed = _run(scenario)

    assert fact is not None
    assert fact.completed
    assert fact.completion_method == "admin_override"
    assert fact.completed_at == 1_700_000_000
    assert len(completed) == 1


def test_audit_ties_on_performed_at_order_by_insertion() -> None:
    target = uuid4()
    entries = [
        AuditEntry.new(
            target_user_id=target,
            action_type="role_change",
            performed_by="admin-1",
            performed_at=1_700_000_000,
            reason=f"change {i}",
        )
        for i in range(3)
    ]

    async def scenario(factory):
        async with factory() as session:
            store = PgStore(session)
            for entry in entries:
                async with store.transaction():
                    await store.audit.append(entry)
        async with factory() as session:
            return await PgStore(session).audit.query(target_user_id=target)

    history = _run(scenario)

    assert [e.id for e in history] == [e.id for e in reversed(entries)]


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


def test_failed_audit_append_rolls_back_override(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    async def failing_append(entry: AuditEntry) -> None:
        raise PersistenceError("audit write failed")

    async def scenario(factory):
        user_id, course_id, unit_ids = await _seed(factory)
        async with factory() as session:
            engine = _engine_for(session)
            monkeypatch.setattr(engine._store.audit, "append", failing_append)
            with pytest.raises(PersistenceError):
                await engine.request_override(
                    user_id, unit_ids[0], course_id, "offline completion", "admin-1"
                )
        async with factory() as session:
            store = PgStore(session)
            return (
                await store.completions.get(user_id, unit_ids[0], course_id),
                await store.progress.get(user_id, course_id),
                await store.assignments.get(user_id, course_id),
                await store.audit.query(target_user_id=user_id),
            )

    fact, progress, assignment, history = _run(scenario)

    assert fact is None
    assert progress is None
    assert assignment is None
    assert history == []


def test_concurrent_overrides_on_one_pair_both_count() -> None:
    async def override(factory, user_id, unit_id, course_id):
        async with factory() as session:
            return await _engine_for(session).request_override(
                user_id, unit_id, course_id, "offline completion", "admin-1"
            )

    async def scenario(factory):
        user_id, course_id, unit_ids = await _seed(factory, units=2)
        results = await asyncio.gather(
            *(override(factory, user_id, u, course_id) for u in unit_ids)
        )
        async with factory() as session:
            store = PgStore(session)
            return (
                results,
                await store.progress.get(user_id, course_id),
                await store.audit.query(target_user_id=user_id),
            )

    results, progress, history = _run(scenario)

    assert all(r.success for r in results)
    assert progress is not None
    assert progress.completed_units == 2
    assert progress.total_units == 2
    assert progress.progress_percentage == 100
    assert progress.status == "completed"
    assert len(history) == 2
