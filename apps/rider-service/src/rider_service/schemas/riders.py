from __future__ import annotations

from datetime import datetime

from pydantic import Field

from rider_service.schemas.common import CamelModel, Coordinates, RadiusMeters, UserId


class LocationUpdateRequest(CamelModel):
    user_id: UserId
    location: Coordinates
    accuracy: float | None = Field(default=None, ge=0)
    heading: float | None = Field(default=None, ge=0, lt=360)
    speed: float | None = Field(default=None, ge=0)
    timestamp: datetime | None = None


class NearbyRidersRequest(CamelModel):
    user_id: UserId
    location: Coordinates
    radius: RadiusMeters | None = None


class LocationUpdateAck(CamelModel):
    success: bool = True
    timestamp: datetime
    nearby_riders: int


class NearbyRiderView(CamelModel):
    user_id: str
    name: str
    location: Coordinates
    distance: float
    distance_text: str
    bearing: int
    direction: str
    last_seen: datetime
    is_online: bool
    accuracy: float | None = None
    heading: float | None = None
    speed: float | None = None


class RiderLocationBroadcast(CamelModel):
    user_id: str
    location: Coordinates
    distance: float


class RiderOfflineNotice(CamelModel):
    user_id: str
    timestamp: datetime
