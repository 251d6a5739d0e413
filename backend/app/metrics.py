"""Prometheus metrics for the concierge API, served on /metrics."""

from __future__ import annotations

import time
from collections.abc import Callable

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    Info,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

UNMATCHED_ROUTE = "unmatched"

app_info = Info("yaka_concierge", "Yaka concierge API information")
app_info.info({"version": "0.2.0", "service": "yaka-concierge-api"})

# ---------- http ----------

http_requests_total = Counter(
    "http_requests_total",
    "HTTP requests by route template and status",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency by route template",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0),
)

# ---------- concierge pipeline ----------

concierge_replies_total = Counter(
    "concierge_replies_total",
    "Concierge replies by answering source",
    ["source"],
)

concierge_upstream_failures_total = Counter(
    "concierge_upstream_failures_total",
    "External provider failures absorbed by the pipeline",
    ["provider"],
)

concierge_resolve_seconds = Histogram(
    "concierge_resolve_seconds",
    "Time to resolve one guest message",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0),
)

places_cache_lookups_total = Counter(
    "places_cache_lookups_total",
    "Places cache lookups",
    ["result"],
)


def route_label(request: Request) -> str:
    """Route template ("/api/chat") rather than the raw path, so unknown URLs share one label."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ROUTE


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        started = time.perf_counter()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            # the route is only known once routing has run
            endpoint = route_label(request)
            http_requests_total.labels(
                method=request.method, endpoint=endpoint, status=status
            ).inc()
            http_request_duration_seconds.labels(
                method=request.method, endpoint=endpoint
            ).observe(time.perf_counter() - started)


def get_metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "PrometheusMiddleware",
    "concierge_replies_total",
    "concierge_resolve_seconds",
    "concierge_upstream_failures_total",
    "get_metrics",
    "places_cache_lookups_total",
    "route_label",
]
