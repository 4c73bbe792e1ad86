"""JSON log output must stay machine-parseable.

Override and audit events are followed through the log pipeline by their
context fields; a plain-text line there is unsearchable.
"""

from __future__ import annotations

import json
import logging
import sys

from completion_service.core.logging import _ContainerFormatter, _JsonFormatter


def _record(msg: str = "test message", args: tuple = (), exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="completion_service.services.executor",
        level=logging.INFO if exc_info is None else logging.ERROR,
        pathname="executor.py",
        lineno=1,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


def test_json_formatter_produces_valid_json() -> None:
    parsed = json.loads(_JsonFormatter().format(_record("Override %s", ("applied",))))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "completion_service.services.executor"
    assert parsed["message"] == "Override applied"
    assert "timestamp" in parsed


def test_json_formatter_includes_request_fields() -> None:
    record = _record()
    record.request_id = "abc-123"  # type: ignore[attr-defined]
    record.method = "POST"  # type: ignore[attr-defined]
    record.path = "/v1/admin/overrides"  # type: ignore[attr-defined]
    record.duration_ms = 12.5  # type: ignore[attr-defined]

    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["request_id"] == "abc-123"
    assert parsed["method"] == "POST"
    assert parsed["path"] == "/v1/admin/overrides"
    assert parsed["duration_ms"] == 12.5


def test_json_formatter_includes_engine_identifiers() -> None:
    record = _record()
    record.user_id = "u-1"  # type: ignore[attr-defined]
    record.course_id = "c-1"  # type: ignore[attr-defined]
    record.audit_id = "a-1"  # type: ignore[attr-defined]
    record.performed_by = "ops@example.com"  # type: ignore[attr-defined]

    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["user_id"] == "u-1"
    assert parsed["course_id"] == "c-1"
    assert parsed["audit_id"] == "a-1"
    assert parsed["performed_by"] == "ops@example.com"
    assert "unit_id" not in parsed


def test_json_formatter_includes_exception_info() -> None:
    try:
        raise ValueError("test error")
    except ValueError:
        output = _JsonFormatter().format(_record("failed", exc_info=sys.exc_info()))

    parsed = json.loads(output)
    assert "ValueError: test error" in parsed["exception"]


def test_container_formatter_is_not_json() -> None:
    output = _ContainerFormatter().format(_record("server started"))
    assert "INFO" in output
    assert "server started" in output
    try:
        json.loads(output)
        raise AssertionError("Container format should not be valid JSON")
    except json.JSONDecodeError:
        pass
