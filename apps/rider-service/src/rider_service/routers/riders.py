from __future__ import annotations

from devkit.clock import now_utc
from fastapi import APIRouter, Depends

from rider_service.broadcast import ProximityBroadcastService
from rider_service.dependencies import enforce_rate_limit, get_broadcast_service
from rider_service.schemas.riders import LocationUpdateAck, LocationUpdateRequest, NearbyRidersRequest

router = APIRouter(prefix="/api", tags=["riders"], dependencies=[Depends(enforce_rate_limit)])


@router.post("/riders/nearby")
async def nearby_riders(
    body: NearbyRidersRequest,
    service: ProximityBroadcastService = Depends(get_broadcast_service),
) -> list[dict]:
    service.update_location(body.user_id, body.location.to_point())
    nearby = service.find_nearby(body.user_id, radius_meters=body.radius)
    return [item.to_payload() for item in nearby]


@router.post("/location/update")
async def update_location(
    body: LocationUpdateRequest,
    service: ProximityBroadcastService = Depends(get_broadcast_service),
) -> dict:
    nearby = service.update_location(
        body.user_id,
        body.location.to_point(),
        accuracy=body.accuracy,
        heading=body.heading,
        speed=body.speed,
        reported_at=body.timestamp,
    )
    return LocationUpdateAck(timestamp=now_utc(), nearby_riders=len(nearby)).to_payload()
