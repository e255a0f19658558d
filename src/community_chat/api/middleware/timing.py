"""Request timing middleware.

Logs one line per HTTP request keyed by the route template, so
``/api/v1/chat/messages/{message_id}`` aggregates across message ids.
The request id is attached by the correlation-id log filter.
"""
from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 1000.0
HEALTH_CHECK_PATHS = frozenset({"/healthz", "/readyz"})
RESPONSE_TIME_HEADER = "X-Response-Time-Ms"


def route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def _level_for(path: str, elapsed_ms: float) -> int:
    if elapsed_ms >= SLOW_REQUEST_MS:
        return logging.WARNING
    if path in HEALTH_CHECK_PATHS:
        return logging.DEBUG
    return logging.INFO


class RequestTimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        template = route_template(request)
        response.headers[RESPONSE_TIME_HEADER] = f"{elapsed_ms:.1f}"
        logger.log(
            _level_for(template, elapsed_ms),
            "%s %s %s %.1fms",
            request.method,
            template,
            response.status_code,
            elapsed_ms,
        )
        return response
