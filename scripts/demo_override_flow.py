"""Demo: natural completion, admin override and audit lookup via TestClient.

Run with:
    python scripts/demo_override_flow.py

Uses the in-memory store, so leave DATABASE_URL and REDIS_URL unset.
"""

from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

from completion_service.api.dependencies import memory_store
from completion_service.main import app
from completion_service.models.content import Course, Section, Unit
from completion_service.models.user import User
from completion_service.services.token_service import issue_access_token

ADMIN_ID = "ops-admin@example.com"


def _seed() -> tuple[User, Course, list[Unit]]:
    course = Course.new(title="Workplace Safety")
    section = Section.new(course_id=course.id, title="Module 1")
    units = [
        Unit.new(section_id=section.id, title=f"Lesson {i}", position=i)
        for i in range(1, 5)
    ]
    learner = User.new(email="learner@example.com")

    memory_store.content.add_course(course)
    memory_store.content.add_section(section)
    for unit in units:
        memory_store.content.add_unit(unit)
    asyncio.run(memory_store.users.add(learner))
    return learner, course, units


def main() -> None:
    client = TestClient(app)
    learner, course, units = _seed()

    learner_auth = {"Authorization": f"Bearer {issue_access_token(str(learner.id))}"}
    admin_auth = {
        "Authorization": f"Bearer {issue_access_token(ADMIN_ID, ['admin'])}"
    }

    # ── Step 1: learner completes two units ─────────────────────────
    for unit in units[:2]:
        r = client.post(
            f"/v1/progress/courses/{course.id}/units/{unit.id}/complete",
            headers=learner_auth,
        )
        print(
            f"1. complete {unit.title:<9} -> {r.status_code}  "
            f"{r.json()['progress_percentage']}%"
        )

    # ── Step 2: validate an override on an already-completed unit ───
    r = client.post(
        "/v1/admin/overrides/validate",
        json={
            "user_id": str(learner.id),
            "unit_id": str(units[0].id),
            "course_id": str(course.id),
        },
        headers=admin_auth,
    )
    print(f"2. validate (done unit)    -> {r.status_code}  {r.json()['warnings']}")

    # ── Step 3: override with an empty reason ───────────────────────
    r = client.post(
        "/v1/admin/overrides",
        json={
            "user_id": str(learner.id),
            "unit_id": str(units[2].id),
            "course_id": str(course.id),
            "reason": "  ",
        },
        headers=admin_auth,
    )
    print(f"3. override (no reason)    -> {r.status_code}  {r.json()['detail']['issues']}")

    # ── Step 4: override the third unit ─────────────────────────────
    r = client.post(
        "/v1/admin/overrides",
        json={
            "user_id": str(learner.id),
            "unit_id": str(units[2].id),
            "course_id": str(course.id),
            "reason": "offline completion verified",
        },
        headers=admin_auth,
    )
    body = r.json()
    print(
        f"4. override               -> {r.status_code}  "
        f"{body['progress']['progress_percentage']}% audit={body['audit_id']}"
    )

    # ── Step 5: read progress as the learner ────────────────────────
    r = client.get(f"/v1/progress/{learner.id}/{course.id}", headers=learner_auth)
    print(
        f"5. progress               -> {r.status_code}  "
        f"{r.json()['completed_units']}/{r.json()['total_units']} {r.json()['status']}"
    )

    # ── Step 6: audit history ───────────────────────────────────────
    r = client.get(
        "/v1/admin/audit",
        params={"target_user_id": str(learner.id)},
        headers=admin_auth,
    )
    for entry in r.json():
        print(f"6. audit {entry['action_type']:<14} by {entry['performed_by']}: {entry['reason']}")


if __name__ == "__main__":
    main()
