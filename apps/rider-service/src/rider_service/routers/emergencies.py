from __future__ import annotations

from fastapi import APIRouter, Depends

from rider_service.broadcast import ProximityBroadcastService, emergency_view, response_view
from rider_service.dependencies import enforce_emergency_rate_limit, enforce_rate_limit, get_broadcast_service
from rider_service.errors import ApiError, EmergencyNotFoundError, EmergencyPermissionError
from rider_service.schemas.emergencies import (
    EmergencyCreateRequest,
    EmergencyRespondRequest,
    EmergencyRespondResult,
    EmergencyStatusUpdateRequest,
    NearbyEmergenciesRequest,
)

router = APIRouter(prefix="/api/emergency", tags=["emergencies"], dependencies=[Depends(enforce_rate_limit)])


def _not_found(exc: EmergencyNotFoundError) -> ApiError:
    return ApiError("EMERGENCY_NOT_FOUND", f"Emergency not found: {exc.emergency_id}", 404)


@router.post("/create", status_code=201, dependencies=[Depends(enforce_emergency_rate_limit)])
async def create_emergency(
    body: EmergencyCreateRequest,
    service: ProximityBroadcastService = Depends(get_broadcast_service),
) -> dict:
    emergency = service.create_emergency(
        body.user_id,
        body.type,
        body.location.to_point(),
        message=body.message,
        severity=body.severity,
    )
    return emergency_view(emergency).to_payload()


@router.post("/nearby")
async def nearby_emergencies(
    body: NearbyEmergenciesRequest,
    service: ProximityBroadcastService = Depends(get_broadcast_service),
) -> list[dict]:
    items = service.nearby_emergencies(body.location.to_point(), radius_meters=body.radius)
    return [item.to_payload() for item in items]


@router.post("/{emergency_id}/respond")
async def respond_to_emergency(
    emergency_id: str,
    body: EmergencyRespondRequest,
    service: ProximityBroadcastService = Depends(get_broadcast_service),
) -> dict:
    try:
        response = service.respond_to_emergency(emergency_id, body.user_id, body.response_type, body.message)
    except EmergencyNotFoundError as exc:
        raise _not_found(exc) from exc
    return EmergencyRespondResult(response=response_view(response)).to_payload()


@router.patch("/{emergency_id}")
async def update_emergency_status(
    emergency_id: str,
    body: EmergencyStatusUpdateRequest,
    service: ProximityBroadcastService = Depends(get_broadcast_service),
) -> dict:
    try:
        emergency = service.update_emergency_status(emergency_id, body.user_id, body.status)
    except EmergencyNotFoundError as exc:
        raise _not_found(exc) from exc
    except EmergencyPermissionError as exc:
        raise ApiError("FORBIDDEN", "Only the emergency creator can update its status", 403) from exc
    return emergency_view(emergency).to_payload()
