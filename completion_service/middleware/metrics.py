"""Request metrics, labelled by route template.

``/v1/progress/{user_id}/{course_id}`` is one label value however many
learners call it.  Paths that match no route share the ``unmatched``
label, and scrapes of /metrics are not counted.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from completion_service.core.metrics import (
    ACTIVE_REQUESTS,
    REQUEST_COUNT,
    REQUEST_DURATION,
)

_UNMATCHED = "unmatched"
_SCRAPE_PATH = "/metrics"


def _endpoint_label(request: Request) -> str:
    # Set by the router during call_next, so only read afterwards.
    route = request.scope.get("route")
    return getattr(route, "path", None) or _UNMATCHED


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path == _SCRAPE_PATH:
            return await call_next(request)

        status_code = 500
        started = time.perf_counter()
        with ACTIVE_REQUESTS.track_inprogress():
            try:
                response = await call_next(request)
                status_code = response.status_code
            finally:
                endpoint = _endpoint_label(request)
                REQUEST_COUNT.labels(request.method, endpoint, str(status_code)).inc()
                REQUEST_DURATION.labels(request.method, endpoint).observe(
                    time.perf_counter() - started
                )
        return response
