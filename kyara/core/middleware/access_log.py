from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)


def _route_template(request: Request) -> str:
    # Path templates keep character and anime ids out of the access log.
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        start = time.monotonic()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            synchronizer = getattr(request.app.state, "synchronizer", None)
            phase = getattr(getattr(synchronizer, "phase", None), "value", "-")
            logger.log(
                logging.WARNING if status_code >= 500 else logging.INFO,
                "http_request",
                extra={
                    "http_method": request.method,
                    "http_route": _route_template(request),
                    "http_status": status_code,
                    "duration_ms": int((time.monotonic() - start) * 1000),
                    "selection_phase": phase,
                },
            )
