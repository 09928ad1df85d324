from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.outpost.core.logging import log_json
from app.outpost.core.metrics import metrics
from app.outpost.core.request_stats import RequestStats, close_request_stats, current_request_stats, open_request_stats

logger = logging.getLogger("outpost.request")


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def build_request_log_payload(
    *,
    request: Request,
    response: Response | None,
    latency_ms: float,
    stats: RequestStats | None = None,
) -> dict:
    """One log line per request: who asked, what route, how it ended and where the time went."""
    state = request.state
    stats = stats or RequestStats()
    return {
        "event": "http_request",
        "trace_id": getattr(state, "trace_id", ""),
        "principal_id": getattr(state, "principal_id", None),
        "role": getattr(state, "role", None),
        "method": request.method,
        "route": _route_template(request),
        "status_code": response.status_code if response is not None else 500,
        "error_code": getattr(state, "error_code", None),
        "error_class": getattr(state, "error_class", None),
        "latency_ms": round(latency_ms, 2),
        "repository_ms": round(stats.repository_ms, 2),
        "repository_statements": stats.repository_statements,
        "cache_hits": stats.cache_hits,
        "cache_misses": stats.cache_misses,
    }


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        token = open_request_stats()
        started = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
            return response
        finally:
            latency_ms = (time.perf_counter() - started) * 1000
            payload = build_request_log_payload(
                request=request,
                response=response,
                latency_ms=latency_ms,
                stats=current_request_stats(),
            )
            close_request_stats(token)
            log_json(logger, payload)
            metrics.record_http_request(
                route=payload["route"],
                method=payload["method"],
                status_code=payload["status_code"],
                latency_ms=latency_ms,
            )
