from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import socketio
from devkit.observability import configure_logging, configure_otel, configure_probe_access_log_filter
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from rider_service.broadcast import ProximityBroadcastService, ProximityConfig, SweepResult
from rider_service.config import SERVICE_NAME, RiderServiceSettings, load_rider_settings
from rider_service.dependencies import build_rate_limit_store
from rider_service.errors import ApiError
from rider_service.events import EventDispatcher, SocketIOTransport
from rider_service.middleware import ObservabilityMiddleware
from rider_service.observability import (
    CompositeApiMetricsCollector,
    InMemoryApiMetricsCollector,
    PrometheusApiMetricsCollector,
)
from rider_service.rate_limit import SlidingWindowRateLimiter
from rider_service.realtime import RealtimeGateway
from rider_service.response import error_response
from rider_service.routers.emergencies import router as emergencies_router
from rider_service.routers.riders import router as riders_router
from rider_service.routers.system import router as system_router
from rider_service.store import RiderStore
from rider_service.sweeper import PeriodicSweeper

logger = logging.getLogger(__name__)


def create_app(settings: RiderServiceSettings | None = None) -> FastAPI:
    settings = settings or load_rider_settings()
    configure_logging(settings.LOG_LEVEL)
    configure_otel(service_name=SERVICE_NAME)
    configure_probe_access_log_filter()

    sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=settings.cors_origins)
    store = RiderStore()
    dispatcher = EventDispatcher(SocketIOTransport(sio), max_pending=settings.OUTBOX_MAX_EVENTS)
    service = ProximityBroadcastService(store, dispatcher, config=ProximityConfig.from_settings(settings))
    RealtimeGateway(service, dispatcher).register(sio)

    prom_metrics = PrometheusApiMetricsCollector()

    def _record_directory_size(_: SweepResult) -> None:
        counts = service.counts()
        prom_metrics.set_directory_size(counts.online_riders, counts.active_emergencies)

    sweeper = PeriodicSweeper(
        service.sweep,
        interval_seconds=settings.SWEEP_INTERVAL_SECONDS,
        on_result=_record_directory_size,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        sweeper.start()
        logger.info("rider_service_started", extra={"component": "rider_service"})
        try:
            yield
        finally:
            await sweeper.stop()
            await dispatcher.close()
            store.clear()
            logger.info("rider_service_stopped", extra={"component": "rider_service"})

    app = FastAPI(title="Rider Saathi Realtime Service", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.started_at = time.monotonic()
    app.state.sio = sio
    app.state.store = store
    app.state.dispatcher = dispatcher
    app.state.broadcast_service = service
    app.state.sweeper = sweeper
    rate_limit_store = build_rate_limit_store(settings)
    app.state.rate_limiter = SlidingWindowRateLimiter(
        rate_limit_store,
        limit=settings.RATE_LIMIT_PER_MINUTE,
        scope="api",
    )
    app.state.emergency_rate_limiter = SlidingWindowRateLimiter(
        rate_limit_store,
        limit=settings.EMERGENCY_RATE_LIMIT_PER_MINUTE,
        scope="emergency",
    )
    app.state.api_metrics = InMemoryApiMetricsCollector()
    app.state.prom_metrics = prom_metrics
    app.state.composite_metrics = CompositeApiMetricsCollector([app.state.api_metrics, prom_metrics])

    app.add_middleware(ObservabilityMiddleware, collector=app.state.composite_metrics)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["*"],
    )
    app.include_router(system_router)
    app.include_router(riders_router)
    app.include_router(emergencies_router)

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"status": "ok"}

    @app.get("/readyz")
    async def readyz() -> dict:
        return {"status": "ready" if sweeper.running else "starting"}

    @app.get("/metrics")
    async def metrics() -> Response:
        counts = service.counts()
        prom_metrics.set_directory_size(counts.online_riders, counts.active_emergencies)
        return Response(content=prom_metrics.render(), media_type="text/plain; version=0.0.4")

    @app.exception_handler(ApiError)
    async def handle_api_error(_: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=error_response(exc.code, exc.message))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        message = "; ".join(err["msg"] for err in exc.errors())
        return JSONResponse(status_code=400, content=error_response("VALIDATION_ERROR", message))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        return JSONResponse(status_code=exc.status_code, content=error_response(code, str(exc.detail)))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unhandled_error",
            extra={"component": "rider_service", "path": request.url.path},
        )
        return JSONResponse(status_code=500, content=error_response("INTERNAL_ERROR", str(exc)))

    return app


def create_asgi_app(settings: RiderServiceSettings | None = None) -> socketio.ASGIApp:
    """HTTP app with the Socket.IO endpoint mounted at ``/socket.io``."""
    app = create_app(settings)
    return socketio.ASGIApp(app.state.sio, other_asgi_app=app)


app = create_asgi_app()
