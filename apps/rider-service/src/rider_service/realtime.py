from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from rider_service.broadcast import ProximityBroadcastService
from rider_service.errors import EmergencyNotFoundError
from rider_service.events import EventDispatcher
from rider_service.schemas.emergencies import EmergencyCreateRequest, EmergencyRespondMessage
from rider_service.schemas.riders import LocationUpdateRequest
from shared.security import sanitize_user_text

logger = logging.getLogger(__name__)

_COMPONENT = "rider_service.realtime"


class RealtimeGateway:
    """Socket.IO event handlers.

    Inbound payloads are validated before any state changes; invalid ones are logged
    and dropped without a reply to the sender.
    """

    def __init__(self, service: ProximityBroadcastService, dispatcher: EventDispatcher) -> None:
        self._service = service
        self._dispatcher = dispatcher

    def register(self, server: Any) -> None:
        server.on("connect", handler=self.on_connect)
        server.on("join-user-room", handler=self.on_join_user_room)
        server.on("location-update", handler=self.on_location_update)
        server.on("emergency-broadcast", handler=self.on_emergency_broadcast)
        server.on("emergency-respond", handler=self.on_emergency_respond)
        server.on("disconnect", handler=self.on_disconnect)

    async def on_connect(self, sid: str, environ: dict, auth: Any = None) -> None:
        logger.info("socket_connected", extra={"component": _COMPONENT, "connection_id": sid})

    async def on_join_user_room(self, sid: str, user_id: Any) -> None:
        if isinstance(user_id, int) and not isinstance(user_id, bool):
            user_id = str(user_id)
        cleaned = sanitize_user_text(user_id)
        if not cleaned:
            logger.warning("invalid_join_request", extra={"component": _COMPONENT, "connection_id": sid})
            return
        self._service.register_connection(cleaned, sid)

    async def on_location_update(self, sid: str, data: Any) -> None:
        try:
            message = LocationUpdateRequest.model_validate(data)
        except ValidationError as exc:
            logger.warning(
                "invalid_location_update",
                extra={"component": _COMPONENT, "connection_id": sid, "errors": exc.error_count()},
            )
            return
        self._service.update_location(
            message.user_id,
            message.location.to_point(),
            accuracy=message.accuracy,
            heading=message.heading,
            speed=message.speed,
            reported_at=message.timestamp,
            connection_id=sid,
        )

    async def on_emergency_broadcast(self, sid: str, data: Any) -> None:
        try:
            message = EmergencyCreateRequest.model_validate(data)
        except ValidationError as exc:
            logger.warning(
                "invalid_emergency_broadcast",
                extra={"component": _COMPONENT, "connection_id": sid, "errors": exc.error_count()},
            )
            return
        self._service.create_emergency(
            message.user_id,
            message.type,
            message.location.to_point(),
            message=message.message,
            severity=message.severity,
        )

    async def on_emergency_respond(self, sid: str, data: Any) -> None:
        try:
            message = EmergencyRespondMessage.model_validate(data)
        except ValidationError as exc:
            logger.warning(
                "invalid_emergency_response",
                extra={"component": _COMPONENT, "connection_id": sid, "errors": exc.error_count()},
            )
            return
        try:
            self._service.respond_to_emergency(
                message.emergency_id,
                message.user_id,
                message.response_type,
                message.message,
            )
        except EmergencyNotFoundError:
            logger.warning(
                "emergency_response_unknown_emergency",
                extra={"component": _COMPONENT, "connection_id": sid, "emergency_id": message.emergency_id},
            )

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        user_id = self._service.release_connection(sid)
        await self._dispatcher.close_connection(sid)
        logger.info(
            "socket_disconnected",
            extra={"component": _COMPONENT, "connection_id": sid, "user_id": user_id, "reason": str(reason)},
        )
