from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from app.outpost.core.config import settings


@dataclass
class MetricsSnapshot:
    content: bytes
    content_type: str


class Metrics:
    def __init__(self) -> None:
        self.enabled = bool(settings.METRICS_ENABLED)
        self._registry = None
        self._http_requests_total = None
        self._http_request_duration_ms = None
        self._cache_hits_total = None
        self._cache_misses_total = None
        self._cache_errors_total = None
        self._cache_invalidations_total = None
        self._access_decisions_total = None
        if self.enabled:
            self._initialize_registry()

    def _initialize_registry(self) -> None:
        self._registry = CollectorRegistry()
        self._http_requests_total = Counter(
            "http_requests_total",
            "HTTP requests by route/method/status.",
            ["route", "method", "status"],
            registry=self._registry,
        )
        self._http_request_duration_ms = Histogram(
            "http_request_duration_ms",
            "HTTP request latency in milliseconds.",
            ["route", "method", "status"],
            buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
            registry=self._registry,
        )
        self._cache_hits_total = Counter(
            "cache_hits_total",
            "Cache reads served from the backing store.",
            ["ttl_category"],
            registry=self._registry,
        )
        self._cache_misses_total = Counter(
            "cache_misses_total",
            "Cache reads that fell through to the loader.",
            ["ttl_category"],
            registry=self._registry,
        )
        self._cache_errors_total = Counter(
            "cache_errors_total",
            "Cache backing store failures that were swallowed.",
            ["operation"],
            registry=self._registry,
        )
        self._cache_invalidations_total = Counter(
            "cache_invalidated_keys_total",
            "Cache keys removed by write-path invalidation.",
            registry=self._registry,
        )
        self._access_decisions_total = Counter(
            "access_decisions_total",
            "Authorization gate decisions.",
            ["resource_kind", "decision"],
            registry=self._registry,
        )

    def reset(self) -> None:
        if not self.enabled:
            return
        self._initialize_registry()

    def record_http_request(self, *, route: str, method: str, status_code: int, latency_ms: float) -> None:
        if not self.enabled:
            return
        labels = {"route": route, "method": method, "status": str(status_code)}
        self._http_requests_total.labels(**labels).inc()
        self._http_request_duration_ms.labels(**labels).observe(latency_ms)

    def increment_cache_hit(self, ttl_category: str) -> None:
        if not self.enabled:
            return
        self._cache_hits_total.labels(ttl_category=ttl_category).inc()

    def increment_cache_miss(self, ttl_category: str) -> None:
        if not self.enabled:
            return
        self._cache_misses_total.labels(ttl_category=ttl_category).inc()

    def increment_cache_error(self, operation: str) -> None:
        if not self.enabled:
            return
        self._cache_errors_total.labels(operation=operation).inc()

    def increment_cache_invalidated(self, count: int) -> None:
        if not self.enabled or count <= 0:
            return
        self._cache_invalidations_total.inc(count)

    def record_access_decision(self, *, resource_kind: str, decision: str) -> None:
        if not self.enabled:
            return
        self._access_decisions_total.labels(resource_kind=resource_kind, decision=decision).inc()

    def render(self) -> MetricsSnapshot:
        if not self.enabled:
            return MetricsSnapshot(content=b"metrics_disabled\n", content_type="text/plain")
        return MetricsSnapshot(content=generate_latest(self._registry), content_type=CONTENT_TYPE_LATEST)


metrics = Metrics()
