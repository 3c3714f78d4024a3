from __future__ import annotations

from datetime import datetime

from rider_service.schemas.common import CamelModel, Coordinates, OptionalText, RadiusMeters, RequiredText, UserId
from rider_service.store import EmergencySeverity, EmergencyStatus


class EmergencyCreateRequest(CamelModel):
    user_id: UserId
    type: RequiredText
    message: OptionalText = ""
    location: Coordinates
    severity: EmergencySeverity = EmergencySeverity.NORMAL


class NearbyEmergenciesRequest(CamelModel):
    location: Coordinates
    radius: RadiusMeters | None = None


class EmergencyRespondRequest(CamelModel):
    user_id: UserId
    response_type: RequiredText
    message: OptionalText = ""


class EmergencyRespondMessage(EmergencyRespondRequest):
    emergency_id: RequiredText


class EmergencyStatusUpdateRequest(CamelModel):
    status: EmergencyStatus
    user_id: UserId


class EmergencyResponseView(CamelModel):
    user_id: str
    response_type: str
    message: str
    timestamp: datetime


class EmergencyView(CamelModel):
    id: str
    user_id: str
    type: str
    message: str
    severity: EmergencySeverity
    location: Coordinates
    status: EmergencyStatus
    created_at: datetime
    updated_at: datetime | None = None
    responses: list[EmergencyResponseView]


class NearbyEmergencyView(EmergencyView):
    distance: float


class EmergencyAlert(NearbyEmergencyView):
    priority: str


class EmergencyResponseNotice(CamelModel):
    emergency_id: str
    response: EmergencyResponseView


class EmergencyRespondResult(CamelModel):
    success: bool = True
    response: EmergencyResponseView
