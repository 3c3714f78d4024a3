from __future__ import annotations

import time

from devkit.clock import now_utc
from fastapi import APIRouter, Depends, Request

from rider_service.broadcast import ProximityBroadcastService
from rider_service.dependencies import enforce_rate_limit, get_broadcast_service, get_dispatcher
from rider_service.events import EventDispatcher
from rider_service.schemas.system import ActiveTotal, HealthView, OutboundStats, StatsView

router = APIRouter(prefix="/api", tags=["system"])


@router.get("/health")
async def health(service: ProximityBroadcastService = Depends(get_broadcast_service)) -> dict:
    counts = service.counts()
    return HealthView(
        status="healthy",
        timestamp=now_utc(),
        active_riders=counts.online_riders,
        active_emergencies=counts.active_emergencies,
    ).to_payload()


@router.get("/stats", dependencies=[Depends(enforce_rate_limit)])
async def stats(
    request: Request,
    service: ProximityBroadcastService = Depends(get_broadcast_service),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> dict:
    counts = service.counts()
    return StatsView(
        riders=ActiveTotal(active=counts.online_riders, total=counts.total_riders),
        emergencies=ActiveTotal(active=counts.active_emergencies, total=counts.total_emergencies),
        connections=counts.connections,
        active_rooms=counts.routed_users,
        outbound=OutboundStats(pending=dispatcher.pending_count(), dropped=dispatcher.dropped_count),
        uptime_seconds=round(time.monotonic() - request.app.state.started_at, 3),
    ).to_payload()
