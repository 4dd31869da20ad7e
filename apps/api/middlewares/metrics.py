"""Metrics middleware for API."""

import time
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.metrics import api_request_duration


def _endpoint_label(request: Request) -> str:
    """Route template, e.g. /admin/moderation/{kind}/{target_id}/hide."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records request duration per method, route template and status."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            api_request_duration.labels(
                method=request.method, endpoint=_endpoint_label(request), status=status_code
            ).observe(time.time() - start_time)
