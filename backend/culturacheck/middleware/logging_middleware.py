from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ..logging_utils import bind_request_context, clear_context

REQUEST_ID_HEADER = "X-Request-ID"

REQUESTS = Counter(
    "culturacheck_http_requests_total",
    "HTTP requests by route and status",
    ["method", "route", "status_code"],
)

REQUEST_SECONDS = Histogram(
    "culturacheck_http_request_duration_seconds",
    "HTTP request latency by route",
    ["method", "route"],
    # a compliance check waits on two model calls
    buckets=(0.05, 0.25, 1, 2.5, 5, 10, 20, 40, 60, float("inf")),
)


def _route_template(request: Request) -> str:
    # set by the router, so only available once the endpoint has run
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id, log its outcome and record latency."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.logger = logging.getLogger("culturacheck.http")

    async def dispatch(self, request: Request, call_next):
        clear_context()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        bind_request_context(request_id)
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        except Exception:
            self.logger.exception("Unhandled error while serving %s %s", request.method, request.url.path)
            raise
        finally:
            elapsed = time.perf_counter() - started
            route = _route_template(request)
            REQUESTS.labels(method=request.method, route=route, status_code=str(status_code)).inc()
            REQUEST_SECONDS.labels(method=request.method, route=route).observe(elapsed)
            self.logger.info(
                "%s %s -> %s",
                request.method,
                route,
                status_code,
                extra={"duration_ms": round(elapsed * 1000, 2)},
            )
            clear_context()
