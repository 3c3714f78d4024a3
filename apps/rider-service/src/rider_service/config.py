from __future__ import annotations

from devkit.config import ServiceSettings, load_settings

SERVICE_NAME = "rider-service"


class RiderServiceSettings(ServiceSettings):
    NEARBY_RADIUS_METERS: float = 5000.0
    EMERGENCY_RADIUS_METERS: float = 10000.0
    RIDER_INACTIVE_SECONDS: int = 300
    EMERGENCY_RETENTION_SECONDS: int = 86400
    SWEEP_INTERVAL_SECONDS: float = 30.0
    OUTBOX_MAX_EVENTS: int = 100
    RATE_LIMIT_PER_MINUTE: int = 100
    EMERGENCY_RATE_LIMIT_PER_MINUTE: int = 5


def load_rider_settings() -> RiderServiceSettings:
    return load_settings(SERVICE_NAME, RiderServiceSettings)
