from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from completion_service.api.dependencies import memory_store
from tests.conftest import auth, mint_token, seed_course, seed_user


def _complete_url(course_id, unit_id) -> str:
    return f"/v1/progress/courses/{course_id}/units/{unit_id}/complete"


def test_learner_completes_unit(client: TestClient) -> None:
    seeded = seed_course(memory_store, units=4)
    user = seed_user(memory_store)
    token = mint_token(username=str(user.id))

    resp = client.post(
        _complete_url(seeded.course.id, seeded.units[0].id), headers=auth(token)
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["progress_percentage"] == 25
    assert data["status"] == "in_progress"
    assert data["started_at"] is not None


def test_learner_reads_own_progress(client: TestClient) -> None:
    seeded = seed_course(memory_store, units=2)
    user = seed_user(memory_store)
    token = mint_token(username=str(user.id))
    for unit in seeded.units:
        client.post(_complete_url(seeded.course.id, unit.id), headers=auth(token))

    resp = client.get(f"/v1/progress/{user.id}/{seeded.course.id}", headers=auth(token))

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "completed"
    assert data["completed_units"] == 2
    assert data["completed_at"] is not None


def test_other_learner_cannot_read_progress(client: TestClient) -> None:
    seeded = seed_course(memory_store)
    owner = seed_user(memory_store)
    other = seed_user(memory_store)

    resp = client.get(
        f"/v1/progress/{owner.id}/{seeded.course.id}",
        headers=auth(mint_token(username=str(other.id))),
    )

    assert resp.status_code == 403


def test_admin_can_read_any_progress(client: TestClient, admin_token: str) -> None:
    seeded = seed_course(memory_store)
    user = seed_user(memory_store)

    resp = client.get(
        f"/v1/progress/{user.id}/{seeded.course.id}", headers=auth(admin_token)
    )

    assert resp.status_code == 200
    assert resp.json()["status"] == "not_started"


def test_unknown_course_is_404(client: TestClient, admin_token: str) -> None:
    resp = client.get(f"/v1/progress/{uuid4()}/{uuid4()}", headers=auth(admin_token))
    assert resp.status_code == 404


def test_completion_with_wrong_course_is_422(client: TestClient) -> None:
    first = seed_course(memory_store, title="First")
    second = seed_course(memory_store, title="Second")
    user = seed_user(memory_store)

    resp = client.post(
        _complete_url(first.course.id, second.units[0].id),
        headers=auth(mint_token(username=str(user.id))),
    )

    assert resp.status_code == 422
    assert resp.json()["detail"]["issues"] == ["unit does not belong to course"]


def test_completion_requires_learner_subject(client: TestClient) -> None:
    seeded = seed_course(memory_store)

    resp = client.post(
        _complete_url(seeded.course.id, seeded.units[0].id),
        headers=auth(mint_token(username="not-a-uuid")),
    )

    assert resp.status_code == 403


def test_progress_requires_token(client: TestClient) -> None:
    resp = client.get(f"/v1/progress/{uuid4()}/{uuid4()}")
    assert resp.status_code == 401
