"""CompletionEngine facade: reads, natural completion, bulk and course tools."""

from __future__ import annotations

import asyncio
import dataclasses
from uuid import uuid4

import pytest
from prometheus_client import REGISTRY

from completion_service.models.content import Unit
from completion_service.models.progress import CourseProgress
from completion_service.repos.store import InMemoryStore
from completion_service.services.engine import CompletionEngine, OverrideRequest
from completion_service.services.errors import NotFoundError, ValidationError
from completion_service.services.locks import InMemoryLockManager
from completion_service.services.progress_cache import (
    InMemoryCacheService,
    ProgressCache,
)
from tests.conftest import FakeClock, seed_course, seed_user


def _engine(store: InMemoryStore, clock: FakeClock | None = None) -> CompletionEngine:
    return CompletionEngine(
        store,
        locks=InMemoryLockManager(),
        cache=ProgressCache(InMemoryCacheService(), ttl_seconds=300),
        clock=clock or FakeClock(),
    )


def _cache_ops(operation: str) -> float:
    value = REGISTRY.get_sample_value(
        "progress_cache_operations_total", {"operation": operation}
    )
    return value if value is not None else 0.0


# --- get_progress ---


def test_get_progress_without_record_returns_fresh_aggregate(store: InMemoryStore) -> None:
    seeded = seed_course(store, units=4)
    user = seed_user(store)

    progress = asyncio.run(_engine(store).get_progress(user.id, seeded.course.id))

    assert progress.total_units == 4
    assert progress.status == "not_started"
    assert store.progress.snapshot() == {}


def test_get_progress_unknown_course(store: InMemoryStore) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(_engine(store).get_progress(uuid4(), uuid4()))


def test_get_progress_is_cached_and_invalidated(store: InMemoryStore) -> None:
    seeded = seed_course(store, units=4)
    user = seed_user(store)
    engine = _engine(store)
    asyncio.run(
        engine.record_natural_completion(user.id, seeded.units[0].id, seeded.course.id)
    )
    hits_before = _cache_ops("hit")

    first = asyncio.run(engine.get_progress(user.id, seeded.course.id))
    second = asyncio.run(engine.get_progress(user.id, seeded.course.id))
    assert first == second
    assert _cache_ops("hit") - hits_before == 1

    asyncio.run(
        engine.request_override(
            user.id, seeded.units[1].id, seeded.course.id, "verified", "admin-1"
        )
    )
    third = asyncio.run(engine.get_progress(user.id, seeded.course.id))
    assert third.completed_units == 2


def test_override_scenario_reflected_in_get_progress(store: InMemoryStore) -> None:
    seeded = seed_course(store, units=5)
    user = seed_user(store)
    engine = _engine(store)
    for unit in seeded.units[:2]:
        asyncio.run(engine.record_natural_completion(user.id, unit.id, seeded.course.id))
    before = asyncio.run(engine.get_progress(user.id, seeded.course.id))

    asyncio.run(
        engine.request_override(
            user.id,
            seeded.units[4].id,
            seeded.course.id,
            "offline completion verified",
            "admin-1",
        )
    )

    after = asyncio.run(engine.get_progress(user.id, seeded.course.id))
    assert after.completed_units == before.completed_units + 1
    history = asyncio.run(engine.get_audit_history(target_user_id=user.id))
    assert [e.action_type for e in history] == ["unit_override"]


# --- natural completion ---


def test_natural_completion_records_fact_and_progress(store: InMemoryStore) -> None:
    seeded = seed_course(store, units=2)
    user = seed_user(store)

    progress = asyncio.run(
        _engine(store).record_natural_completion(
            user.id, seeded.units[0].id, seeded.course.id
        )
    )

    assert progress.progress_percentage == 50
    fact = asyncio.run(
        store.completions.get(user.id, seeded.units[0].id, seeded.course.id)
    )
    assert fact is not None and fact.completion_method == "natural"
    assert store.audit.snapshot() == []


def test_natural_completion_keeps_override_method(store: InMemoryStore) -> None:
    seeded = seed_course(store, units=2)
    user = seed_user(store)
    engine = _engine(store)
    unit = seeded.units[0]
    asyncio.run(engine.request_override(user.id, unit.id, seeded.course.id, "r", "a"))

    asyncio.run(engine.record_natural_completion(user.id, unit.id, seeded.course.id))

    fact = asyncio.run(store.completions.get(user.id, unit.id, seeded.course.id))
    assert fact is not None and fact.completion_method == "admin_override"


def test_natural_completion_wrong_course(store: InMemoryStore) -> None:
    first = seed_course(store, title="First")
    second = seed_course(store, title="Second")
    user = seed_user(store)

    with pytest.raises(ValidationError):
        asyncio.run(
            _engine(store).record_natural_completion(
                user.id, second.units[0].id, first.course.id
            )
        )
    assert store.completions.snapshot() == {}


def test_natural_completion_unknown_unit(store: InMemoryStore) -> None:
    seeded = seed_course(store)
    user = seed_user(store)
    with pytest.raises(NotFoundError):
        asyncio.run(
            _engine(store).record_natural_completion(user.id, uuid4(), seeded.course.id)
        )


def test_completed_at_stable_across_recalculation(store: InMemoryStore) -> None:
    clock = FakeClock()
    seeded = seed_course(store, units=2)
    user = seed_user(store)
    engine = _engine(store, clock)
    for unit in seeded.units:
        asyncio.run(engine.record_natural_completion(user.id, unit.id, seeded.course.id))
    done = asyncio.run(engine.get_progress(user.id, seeded.course.id))
    assert done.status == "completed"

    for _ in range(3):
        clock.now += 1000
        asyncio.run(engine.recalculate_course(seeded.course.id))

    after = asyncio.run(engine.get_progress(user.id, seeded.course.id))
    assert after.completed_at == done.completed_at


def test_percentage_never_drops_when_course_grows(store: InMemoryStore) -> None:
    seeded = seed_course(store, units=2)
    user = seed_user(store)
    engine = _engine(store)
    asyncio.run(
        engine.record_natural_completion(user.id, seeded.units[0].id, seeded.course.id)
    )
    store.content.add_unit(Unit.new(section_id=seeded.section.id, title="New"))
    store.content.add_unit(Unit.new(section_id=seeded.section.id, title="Newer"))

    report = asyncio.run(engine.recalculate_course(seeded.course.id))

    assert report.changes == []
    progress = asyncio.run(engine.get_progress(user.id, seeded.course.id))
    assert progress.progress_percentage == 50


# --- bulk ---


def test_bulk_override_reports_each_item(store: InMemoryStore) -> None:
    first = seed_course(store, title="First")
    second = seed_course(store, title="Second")
    alice = seed_user(store)
    bob = seed_user(store)
    items = [
        OverrideRequest(alice.id, first.units[0].id, first.course.id),
        OverrideRequest(bob.id, first.units[0].id, first.course.id),
        OverrideRequest(bob.id, second.units[0].id, first.course.id),  # wrong course
        OverrideRequest(uuid4(), first.units[1].id, first.course.id),  # no such user
    ]

    report = asyncio.run(_engine(store).bulk_override(items, "cohort import", "admin-1"))

    assert report.completed == 2
    assert report.failed == 2
    assert report.affected_users == 2
    assert len(report.errors) == 2
    assert [r.success for r in report.results] == [True, True, False, False]
    assert report.results[2].error == "unit does not belong to course"
    assert len(store.audit.snapshot()) == 2


def test_bulk_override_requires_reason(store: InMemoryStore) -> None:
    seeded = seed_course(store)
    user = seed_user(store)
    items = [OverrideRequest(user.id, seeded.units[0].id, seeded.course.id)]

    with pytest.raises(ValidationError):
        asyncio.run(_engine(store).bulk_override(items, "", "admin-1"))


# --- course tools ---


def test_recalculate_course_reports_changes(store: InMemoryStore) -> None:
    seeded = seed_course(store, units=4)
    user = seed_user(store)
    engine = _engine(store)
    asyncio.run(
        engine.record_natural_completion(user.id, seeded.units[0].id, seeded.course.id)
    )
    # A unit left the course, so the learner is now 1 of 3.
    store.content.remove_unit(seeded.units[3].id)

    report = asyncio.run(engine.recalculate_course(seeded.course.id))

    assert report.processed == 1
    [change] = report.changes
    assert change.user_id == user.id
    assert change.old_percentage == 25
    assert change.new_percentage == 33


def test_recalculate_unknown_course(store: InMemoryStore) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(_engine(store).recalculate_course(uuid4()))


def test_diagnose_healthy_course(store: InMemoryStore) -> None:
    seeded = seed_course(store, units=2)
    user = seed_user(store)
    engine = _engine(store)
    asyncio.run(
        engine.record_natural_completion(user.id, seeded.units[0].id, seeded.course.id)
    )

    report = asyncio.run(engine.diagnose_course(seeded.course.id))

    assert report.total_records == 1
    assert report.inconsistent_records == 0
    assert report.health_score == 100


def test_diagnose_course_without_records(store: InMemoryStore) -> None:
    seeded = seed_course(store)
    report = asyncio.run(_engine(store).diagnose_course(seeded.course.id))
    assert report.total_records == 0
    assert report.health_score == 100


def test_diagnose_flags_drifted_records(store: InMemoryStore) -> None:
    seeded = seed_course(store, units=4)
    good = seed_user(store)
    bad = seed_user(store)
    engine = _engine(store)
    asyncio.run(
        engine.record_natural_completion(good.id, seeded.units[0].id, seeded.course.id)
    )
    # Imported record claiming completion with no facts behind it.
    asyncio.run(
        store.progress.upsert(
            CourseProgress(
                user_id=bad.id,
                course_id=seeded.course.id,
                status="completed",
                progress_percentage=100,
                completed_units=4,
                total_units=4,
            )
        )
    )
    before = store.progress.snapshot()

    report = asyncio.run(engine.diagnose_course(seeded.course.id))

    assert report.total_records == 2
    assert report.inconsistent_records == 1
    assert report.health_score == 50
    [finding] = report.findings
    assert finding.user_id == bad.id
    assert finding.derived_percentage == 0
    assert "completed but not all units are completed" in finding.problems
    assert store.progress.snapshot() == before


def test_diagnose_flags_status_inconsistent_with_percentage(store: InMemoryStore) -> None:
    seeded = seed_course(store, units=2)
    user = seed_user(store)
    engine = _engine(store)
    progress = asyncio.run(
        engine.record_natural_completion(user.id, seeded.units[0].id, seeded.course.id)
    )
    asyncio.run(
        store.progress.upsert(dataclasses.replace(progress, status="not_started"))
    )

    report = asyncio.run(engine.diagnose_course(seeded.course.id))

    [finding] = report.findings
    assert any("inconsistent" in p for p in finding.problems)
