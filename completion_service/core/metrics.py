"""Prometheus metric inventory for completion-service.

Every metric the service exports is declared here; the modules that own
the behaviour import the metric and increment or observe it in place.

HTTP metrics are labelled by route template (``/v1/progress/{user_id}/
{course_id}``), not by raw path, so per-user URLs do not create one time
series per learner.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, route, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Engine metrics
# ---------------------------------------------------------------------------

UNIT_OVERRIDES = Counter(
    "unit_overrides_total",
    "Administrative unit overrides by outcome",
    ["result"],  # applied|rejected|integrity_error|persistence_error
)

PROGRESS_RECALCULATIONS = Counter(
    "progress_recalculations_total",
    "CourseProgress commits by outcome",
    ["outcome"],  # created|updated|completed|held
)

AUDIT_ENTRIES = Counter(
    "audit_entries_total",
    "Audit entries appended by action type",
    ["action_type"],
)

PROGRESS_CACHE_OPERATIONS = Counter(
    "progress_cache_operations_total",
    "Progress cache lookups and invalidations",
    ["operation"],  # hit|miss|invalidate
)

LOCK_WAIT = Histogram(
    "progress_lock_wait_seconds",
    "Time spent waiting for the per-(user, course) progress lock",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
)
