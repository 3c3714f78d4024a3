from fastapi.testclient import TestClient

from rider_service.app import create_app
from rider_service.config import RiderServiceSettings
from rider_service.observability import (
    ApiRequestMetric,
    InMemoryApiMetricsCollector,
    get_trace_id,
    set_trace_id,
)


def _app():
    return create_app(RiderServiceSettings(REDIS_URL=None))


def test_trace_header_is_propagated() -> None:
    with TestClient(_app()) as client:
        response = client.get("/api/health", headers={"x-trace-id": "trace-abc"})

    assert response.status_code == 200
    assert response.headers["x-trace-id"] == "trace-abc"


def test_trace_header_is_generated_when_missing() -> None:
    with TestClient(_app()) as client:
        response = client.get("/healthz")

    assert response.headers["x-trace-id"]


def test_api_latency_metric_uses_route_template() -> None:
    app = _app()

    with TestClient(app) as client:
        response = client.post(
            "/api/emergency/abc123/respond",
            json={"userId": "helper", "responseType": "on-the-way"},
        )
    metrics = app.state.api_metrics.snapshot()

    assert response.status_code == 404
    assert metrics[-1]["path"] == "/api/emergency/{emergency_id}/respond"
    assert metrics[-1]["status_code"] == 404
    assert metrics[-1]["duration_ms"] >= 0


def test_prometheus_metrics_endpoint_exposes_http_and_directory_metrics() -> None:
    app = _app()

    with TestClient(app) as client:
        client.post("/api/riders/nearby", json={"userId": "rider-a", "location": {"lat": 28.6139, "lng": 77.209}})
        response = client.get("/metrics")
    body = response.text

    assert response.status_code == 200
    assert "rider_http_requests_total" in body
    assert "rider_http_request_duration_ms" in body
    assert "rider_online_riders 1.0" in body
    assert "rider_active_emergencies 0.0" in body


def test_in_memory_collector_keeps_latest_entries() -> None:
    collector = InMemoryApiMetricsCollector(max_entries=2)
    for status in (200, 201, 404):
        collector.observe(ApiRequestMetric("GET", "/api/health", status, 1.0, "trace"))

    assert [item["status_code"] for item in collector.snapshot()] == [201, 404]


def test_trace_id_context_roundtrip() -> None:
    set_trace_id("trace-xyz")
    assert get_trace_id() == "trace-xyz"
