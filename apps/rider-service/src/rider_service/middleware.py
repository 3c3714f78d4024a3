from __future__ import annotations

from time import perf_counter
from uuid import uuid4

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from rider_service.observability import ApiMetricCollector, ApiRequestMetric, set_trace_id


class ObservabilityMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, collector: ApiMetricCollector) -> None:
        super().__init__(app)
        self._collector = collector
        self._tracer = trace.get_tracer("rider-service")

    async def dispatch(self, request: Request, call_next) -> Response:
        trace_id = request.headers.get("x-trace-id") or str(uuid4())
        set_trace_id(trace_id)
        started = perf_counter()
        status_code = 500
        with self._tracer.start_as_current_span("http.request") as span:
            span.set_attribute("http.method", request.method)
            span.set_attribute("http.route", self._route_template(request))
            span.set_attribute("trace.id", trace_id)
            try:
                response = await call_next(request)
                status_code = response.status_code
            finally:
                span.set_attribute("http.status_code", status_code)
                self._collector.observe(
                    ApiRequestMetric(
                        method=request.method,
                        path=self._route_template(request),
                        status_code=status_code,
                        duration_ms=(perf_counter() - started) * 1000.0,
                        trace_id=trace_id,
                    )
                )

        response.headers["x-trace-id"] = trace_id
        return response

    @staticmethod
    def _route_template(request: Request) -> str:
        # /api/emergency/{id} rather than one label per emergency id
        route = request.scope.get("route")
        path = getattr(route, "path", None)
        return path if isinstance(path, str) else request.url.path
