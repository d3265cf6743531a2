"""
Shared metrics configuration for the caching proxy.
"""

import threading
import time
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # A private registry keeps repeated collectors (tests, reloads) from
        # colliding on the process-global default registry.
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        if self.service_name == "proxy":
            self._setup_proxy_metrics()

    def _setup_proxy_metrics(self):
        """Set up proxy-specific metrics."""
        self._metrics["cache_hits_total"] = Counter(
            "cache_hits_total",
            "Total cache hits",
            ["tier"],
            registry=self.registry
        )

        self._metrics["cache_misses_total"] = Counter(
            "cache_misses_total",
            "Total cache misses",
            registry=self.registry
        )

        self._metrics["upstream_fetch_attempts_total"] = Counter(
            "upstream_fetch_attempts_total",
            "Upstream fetch attempts by result",
            ["result"],
            registry=self.registry
        )

        self._metrics["shared_cache_degraded_total"] = Counter(
            "shared_cache_degraded_total",
            "Shared cache tier operations that failed and were absorbed",
            ["operation"],
            registry=self.registry
        )

        self._metrics["proxy_request_latency_seconds"] = Histogram(
            "proxy_request_latency_seconds",
            "Latency of proxied requests in seconds",
            ["source"],
            registry=self.registry
        )

        self._metrics["inflight_fetches"] = Gauge(
            "inflight_fetches",
            "Number of coalesced upstream fetches in flight",
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        metric = self._metrics.get(metric_name)
        if metric is None:
            return
        (metric.labels(**labels) if labels else metric).inc()

    def set_gauge(self, metric_name: str, value: float, **labels):
        """Set a gauge metric value."""
        metric = self._metrics.get(metric_name)
        if metric is None:
            return
        (metric.labels(**labels) if labels else metric).set(value)

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        metric = self._metrics.get(metric_name)
        if metric is None:
            return
        (metric.labels(**labels) if labels else metric).observe(value)


class ProxyStats:
    """Process-wide hit/miss/error/latency counters read back by ``/stats``.

    Prometheus counters cannot be reset or cheaply read back, so the figures
    the admin surface reports are kept here under a lock. Every ``record_*``
    call is also forwarded to the collector when one is attached.
    """

    def __init__(self, collector: Optional[MetricsCollector] = None):
        self.collector = collector
        self._lock = threading.Lock()
        self._reset_locked()

    def _reset_locked(self) -> None:
        self._hits_by_tier: Dict[str, int] = {}
        self._misses = 0
        self._errors = 0
        self._latency_total = 0.0
        self._latency_count = 0
        self._started_at = time.time()

    def record_hit(self, tier: str) -> None:
        with self._lock:
            self._hits_by_tier[tier] = self._hits_by_tier.get(tier, 0) + 1
        if self.collector:
            self.collector.increment_counter("cache_hits_total", tier=tier)

    def record_miss(self) -> None:
        with self._lock:
            self._misses += 1
        if self.collector:
            self.collector.increment_counter("cache_misses_total")

    def record_error(self, error_type: str = "upstream") -> None:
        with self._lock:
            self._errors += 1
        if self.collector:
            self.collector.record_error(error_type)

    def record_latency(self, seconds: float, source: str = "proxy") -> None:
        with self._lock:
            self._latency_total += seconds
            self._latency_count += 1
        if self.collector:
            self.collector.observe_histogram("proxy_request_latency_seconds", seconds, source=source)

    def snapshot(self) -> Dict[str, Any]:
        """Point-in-time copy of the counters."""
        with self._lock:
            hits = sum(self._hits_by_tier.values())
            misses = self._misses
            return {
                "hits": hits,
                "misses": misses,
                "errors": self._errors,
                "hit_ratio": hits / max(hits + misses, 1),
                "hits_by_tier": dict(self._hits_by_tier),
                "requests": hits + misses,
                "avg_latency_ms": round(self._latency_total / self._latency_count * 1000, 3)
                if self._latency_count else 0.0,
                "since": self._started_at,
            }

    def reset(self) -> None:
        with self._lock:
            self._reset_locked()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)

