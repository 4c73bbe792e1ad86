"""Every response carries an X-Request-ID, generated or echoed."""

from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

from completion_service.middleware.request_context import request_id_var


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    uuid.UUID(resp.headers["x-request-id"])


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "my-custom-request-id-123"})
    assert resp.headers.get("x-request-id") == "my-custom-request-id-123"


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    resp = client.get("/v1/admin/audit")  # no token
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None


def test_request_id_does_not_leak_after_request(client: TestClient) -> None:
    client.get("/health", headers={"X-Request-ID": "leak-check"})
    assert request_id_var.get() == "-"
