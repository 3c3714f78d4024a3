from __future__ import annotations

from datetime import datetime

from rider_service.schemas.common import CamelModel


class HealthView(CamelModel):
    status: str
    timestamp: datetime
    active_riders: int
    active_emergencies: int


class ActiveTotal(CamelModel):
    active: int
    total: int


class OutboundStats(CamelModel):
    pending: int
    dropped: int


class StatsView(CamelModel):
    riders: ActiveTotal
    emergencies: ActiveTotal
    connections: int
    active_rooms: int
    outbound: OutboundStats
    uptime_seconds: float
