"""Root logger setup for completion-service.

Text lines for a terminal, or JSON lines (LOG_JSON=true) for a log
pipeline.  The request id filter in middleware/request_context.py stamps
every record, and the engine services pass the ids they act on through
``extra=``, so one override can be followed from its HTTP request to the
audit entry it wrote.
"""

from __future__ import annotations

import json
import logging
import sys

from completion_service.middleware.request_context import RequestIdFilter

# Attributes copied from a LogRecord into the JSON object when present.
_CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "user_id",
    "course_id",
    "unit_id",
    "audit_id",
    "performed_by",
)

_QUIET_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "httpcore",
    "httpx",
    "sqlalchemy.engine",
)


def _request_id(record: logging.LogRecord) -> str | None:
    value = getattr(record, "request_id", None)
    return None if value in (None, "-") else value


class _ContainerFormatter(logging.Formatter):
    """``<time> <LEVEL> <logger> [request id]  <message>``

    WARNING and above end with ``[file:line]``; a traceback, if any,
    follows on the next lines.
    """

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        stamp = f"{self.formatTime(record, self.datefmt)}.{int(record.msecs):03d}"
        head = f"{stamp} {record.levelname:<8} {record.name}"
        request_id = _request_id(record)
        if request_id:
            head += f" [{request_id}]"
        line = f"{head}  {record.getMessage()}"
        if record.levelno >= logging.WARNING:
            line += f"  [{record.filename}:{record.lineno}]"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class _JsonFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None and value != "-":
                payload[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Replace the root handlers with one stdout handler.

    Unknown level names fall back to INFO.  Third-party chatter (uvicorn,
    httpx, SQL echo) stays at WARNING or above.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())
    # Handler-level, so records propagated from module loggers are stamped too.
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
