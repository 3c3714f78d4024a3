from __future__ import annotations

from contextvars import ContextVar
from dataclasses import asdict, dataclass
from typing import Protocol

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

_trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")


def set_trace_id(trace_id: str) -> None:
    _trace_id_ctx.set(trace_id)


def get_trace_id() -> str:
    return _trace_id_ctx.get()


@dataclass(frozen=True)
class ApiRequestMetric:
    method: str
    path: str
    status_code: int
    duration_ms: float
    trace_id: str


class ApiMetricCollector(Protocol):
    def observe(self, metric: ApiRequestMetric) -> None: ...


class InMemoryApiMetricsCollector(ApiMetricCollector):
    def __init__(self, max_entries: int = 1000) -> None:
        self._metrics: list[ApiRequestMetric] = []
        self._max_entries = max_entries

    def observe(self, metric: ApiRequestMetric) -> None:
        self._metrics.append(metric)
        if len(self._metrics) > self._max_entries:
            del self._metrics[0]

    def snapshot(self) -> list[dict]:
        return [asdict(item) for item in self._metrics]


class PrometheusApiMetricsCollector(ApiMetricCollector):
    """HTTP request metrics plus rider directory gauges, in a private registry."""

    def __init__(self) -> None:
        self._registry = CollectorRegistry()
        self._request_counter = Counter(
            "rider_http_requests_total",
            "Total rider service HTTP requests",
            labelnames=("method", "path", "status_code"),
            registry=self._registry,
        )
        self._latency_histogram = Histogram(
            "rider_http_request_duration_ms",
            "Rider service HTTP request latency in milliseconds",
            labelnames=("method", "path"),
            buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 3000),
            registry=self._registry,
        )
        self._online_riders = Gauge(
            "rider_online_riders",
            "Riders currently flagged online",
            registry=self._registry,
        )
        self._active_emergencies = Gauge(
            "rider_active_emergencies",
            "Emergencies with active status",
            registry=self._registry,
        )

    def observe(self, metric: ApiRequestMetric) -> None:
        status = str(metric.status_code)
        self._request_counter.labels(metric.method, metric.path, status).inc()
        self._latency_histogram.labels(metric.method, metric.path).observe(metric.duration_ms)

    def set_directory_size(self, online_riders: int, active_emergencies: int) -> None:
        self._online_riders.set(online_riders)
        self._active_emergencies.set(active_emergencies)

    def render(self) -> str:
        return generate_latest(self._registry).decode("utf-8")


class CompositeApiMetricsCollector(ApiMetricCollector):
    def __init__(self, collectors: list[ApiMetricCollector]) -> None:
        self._collectors = collectors

    def observe(self, metric: ApiRequestMetric) -> None:
        for collector in self._collectors:
            collector.observe(metric)
