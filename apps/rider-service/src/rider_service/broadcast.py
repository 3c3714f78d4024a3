from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from devkit.clock import Clock, now_utc
from geo_engine.bearing import compass_direction, initial_bearing_degrees
from geo_engine.distance import format_distance
from geo_engine.geofence import rank_within_radius
from geo_engine.models import GeoPoint, is_valid_coordinates

from rider_service.config import RiderServiceSettings
from rider_service.errors import EmergencyNotFoundError, EmergencyPermissionError
from rider_service.events import EventSink, OutboundEvent, RealtimeEvent
from rider_service.schemas.common import Coordinates
from rider_service.schemas.emergencies import (
    EmergencyAlert,
    EmergencyResponseNotice,
    EmergencyResponseView,
    EmergencyView,
    NearbyEmergencyView,
)
from rider_service.schemas.riders import NearbyRiderView, RiderLocationBroadcast, RiderOfflineNotice
from rider_service.store import (
    EmergencyRecord,
    EmergencyResponse,
    EmergencySeverity,
    EmergencyStatus,
    RiderRecord,
    RiderStore,
)

logger = logging.getLogger(__name__)

_COMPONENT = "rider_service"


@dataclass(frozen=True)
class ProximityConfig:
    nearby_radius_meters: float = 5000.0
    emergency_radius_meters: float = 10000.0
    rider_inactive_after: timedelta = timedelta(minutes=5)
    emergency_retention: timedelta = timedelta(hours=24)

    @classmethod
    def from_settings(cls, settings: RiderServiceSettings) -> ProximityConfig:
        return cls(
            nearby_radius_meters=settings.NEARBY_RADIUS_METERS,
            emergency_radius_meters=settings.EMERGENCY_RADIUS_METERS,
            rider_inactive_after=timedelta(seconds=settings.RIDER_INACTIVE_SECONDS),
            emergency_retention=timedelta(seconds=settings.EMERGENCY_RETENTION_SECONDS),
        )


@dataclass(frozen=True)
class SweepResult:
    riders_marked_offline: int
    emergencies_purged: int


@dataclass(frozen=True)
class ServiceCounts:
    online_riders: int
    total_riders: int
    active_emergencies: int
    total_emergencies: int
    connections: int
    routed_users: int


def display_name(user_id: str) -> str:
    return f"Rider {user_id[-4:]}"


def alert_priority(severity: EmergencySeverity) -> str:
    return "immediate" if severity is EmergencySeverity.CRITICAL else "high"


def emergency_view(emergency: EmergencyRecord) -> EmergencyView:
    return EmergencyView(
        id=emergency.emergency_id,
        user_id=emergency.user_id,
        type=emergency.emergency_type,
        message=emergency.message,
        severity=emergency.severity,
        location=Coordinates.from_point(emergency.location),
        status=emergency.status,
        created_at=emergency.created_at,
        updated_at=emergency.updated_at,
        responses=[response_view(item) for item in emergency.responses],
    )


def response_view(response: EmergencyResponse) -> EmergencyResponseView:
    return EmergencyResponseView(
        user_id=response.user_id,
        response_type=response.response_type,
        message=response.message,
        timestamp=response.timestamp,
    )


class ProximityBroadcastService:
    """Online-rider directory plus routing of location and emergency events to nearby riders.

    Every operation is synchronous and runs to completion on the event loop, so the
    store needs no locking. Outbound events go to ``sink`` and are delivered later.
    """

    def __init__(
        self,
        store: RiderStore,
        sink: EventSink,
        config: ProximityConfig | None = None,
        clock: Clock = now_utc,
    ) -> None:
        self._store = store
        self._sink = sink
        self._config = config or ProximityConfig()
        self._clock = clock

    @property
    def config(self) -> ProximityConfig:
        return self._config

    # connections

    def register_connection(self, user_id: str, connection_id: str) -> list[NearbyRiderView]:
        replaced = self._store.bind_connection(user_id, connection_id)
        rider = self._store.get_rider(user_id)
        if rider is not None:
            rider.is_online = True
            rider.last_seen = self._clock()
        logger.info(
            "rider_connected",
            extra={
                "component": _COMPONENT,
                "user_id": user_id,
                "connection_id": connection_id,
                "replaced_connection_id": replaced,
            },
        )
        nearby = self.find_nearby(user_id)
        self._publish(connection_id, RealtimeEvent.RIDERS_NEARBY, [item.to_payload() for item in nearby])
        return nearby

    def release_connection(self, connection_id: str) -> str | None:
        user_id, was_current = self._store.unbind_connection(connection_id)
        if user_id is None or not was_current:
            return user_id
        rider = self._store.get_rider(user_id)
        if rider is None:
            return user_id
        now = self._clock()
        rider.is_online = False
        rider.last_seen = now
        notice = RiderOfflineNotice(user_id=user_id, timestamp=now).to_payload()
        for item in self.find_nearby(user_id):
            target = self._store.connection_for(item.user_id)
            if target is not None:
                self._publish(target, RealtimeEvent.RIDER_OFFLINE, notice)
        logger.info("rider_offline", extra={"component": _COMPONENT, "user_id": user_id, "reason": "disconnect"})
        return user_id

    # locations

    def update_location(
        self,
        user_id: str,
        location: GeoPoint,
        *,
        accuracy: float | None = None,
        heading: float | None = None,
        speed: float | None = None,
        reported_at: datetime | None = None,
        connection_id: str | None = None,
    ) -> list[NearbyRiderView]:
        if not is_valid_coordinates(location.lat, location.lng):
            logger.warning("invalid_location_ignored", extra={"component": _COMPONENT, "user_id": user_id})
            return []
        if connection_id is not None and self._store.connection_for(user_id) != connection_id:
            self._store.bind_connection(user_id, connection_id)
        if connection_id is None:
            connection_id = self._store.connection_for(user_id)
        rider = self._store.put_rider(
            RiderRecord(
                user_id=user_id,
                location=location,
                last_seen=self._clock(),
                is_online=True,
                accuracy=accuracy,
                heading=heading,
                speed=speed,
                reported_at=reported_at,
            )
        )
        logger.debug(
            "location_updated",
            extra={"component": _COMPONENT, "user_id": user_id, "lat": location.lat, "lng": location.lng},
        )

        nearby = self.find_nearby(user_id)
        for item in nearby:
            target = self._store.connection_for(item.user_id)
            if target is None or target == connection_id:
                continue
            update = RiderLocationBroadcast(
                user_id=user_id,
                location=Coordinates.from_point(rider.location),
                distance=item.distance,
            )
            self._publish(target, RealtimeEvent.RIDER_LOCATION_UPDATE, update.to_payload())
        if connection_id is not None:
            self._publish(connection_id, RealtimeEvent.RIDERS_NEARBY, [item.to_payload() for item in nearby])
        return nearby

    def find_nearby(self, user_id: str, radius_meters: float | None = None) -> list[NearbyRiderView]:
        radius = self._config.nearby_radius_meters if radius_meters is None else radius_meters
        origin = self._store.get_rider(user_id)
        if origin is None:
            return []
        candidates = (
            (rider, rider.location)
            for rider in self._store.riders()
            if rider.user_id != user_id and rider.is_online
        )
        return [
            self._nearby_view(origin.location, rider, distance)
            for rider, distance in rank_within_radius(origin.location, candidates, radius)
        ]

    def _nearby_view(self, origin: GeoPoint, rider: RiderRecord, distance_meters: float) -> NearbyRiderView:
        bearing = initial_bearing_degrees(origin, rider.location)
        return NearbyRiderView(
            user_id=rider.user_id,
            name=display_name(rider.user_id),
            location=Coordinates.from_point(rider.location),
            distance=round(distance_meters, 2),
            distance_text=format_distance(distance_meters),
            bearing=bearing,
            direction=compass_direction(bearing),
            last_seen=rider.last_seen,
            is_online=rider.is_online,
            accuracy=rider.accuracy,
            heading=rider.heading,
            speed=rider.speed,
        )

    # emergencies

    def create_emergency(
        self,
        user_id: str,
        emergency_type: str,
        location: GeoPoint,
        *,
        message: str = "",
        severity: EmergencySeverity = EmergencySeverity.NORMAL,
    ) -> EmergencyRecord:
        emergency = self._store.add_emergency(
            user_id=user_id,
            emergency_type=emergency_type,
            location=location,
            created_at=self._clock(),
            message=message,
            severity=severity,
        )
        alerted = self.broadcast_emergency(emergency)
        logger.warning(
            "emergency_created",
            extra={
                "component": _COMPONENT,
                "emergency_id": emergency.emergency_id,
                "user_id": user_id,
                "type": emergency_type,
                "severity": severity.value,
                "alerted_riders": alerted,
            },
        )
        return emergency

    def broadcast_emergency(self, emergency: EmergencyRecord) -> int:
        view = emergency_view(emergency)
        priority = alert_priority(emergency.severity)
        alerted = 0
        for rider, distance in self._riders_near(emergency.location, exclude_user_id=emergency.user_id):
            target = self._store.connection_for(rider.user_id)
            if target is None:
                continue
            alert = EmergencyAlert(
                **view.model_dump(),
                distance=round(distance, 2),
                priority=priority,
            )
            self._publish(target, RealtimeEvent.EMERGENCY_ALERT, alert.to_payload())
            alerted += 1
        return alerted

    def nearby_emergencies(self, location: GeoPoint, radius_meters: float | None = None) -> list[NearbyEmergencyView]:
        radius = self._config.emergency_radius_meters if radius_meters is None else radius_meters
        candidates = (
            (emergency, emergency.location) for emergency in self._store.emergencies() if emergency.is_active
        )
        return [
            NearbyEmergencyView(**emergency_view(emergency).model_dump(), distance=round(distance, 2))
            for emergency, distance in rank_within_radius(location, candidates, radius)
        ]

    def get_emergency(self, emergency_id: str) -> EmergencyRecord:
        emergency = self._store.get_emergency(emergency_id)
        if emergency is None:
            raise EmergencyNotFoundError(emergency_id)
        return emergency

    def respond_to_emergency(
        self,
        emergency_id: str,
        user_id: str,
        response_type: str,
        message: str = "",
    ) -> EmergencyResponse:
        emergency = self.get_emergency(emergency_id)
        response = EmergencyResponse(
            user_id=user_id,
            response_type=response_type,
            timestamp=self._clock(),
            message=message,
        )
        emergency.responses.append(response)

        creator_connection = self._store.connection_for(emergency.user_id)
        if creator_connection is not None:
            notice = EmergencyResponseNotice(emergency_id=emergency_id, response=response_view(response))
            self._publish(creator_connection, RealtimeEvent.EMERGENCY_RESPONSE, notice.to_payload())
        logger.info(
            "emergency_response_recorded",
            extra={
                "component": _COMPONENT,
                "emergency_id": emergency_id,
                "user_id": user_id,
                "response_type": response_type,
                "creator_notified": creator_connection is not None,
            },
        )
        return response

    def update_emergency_status(self, emergency_id: str, user_id: str, status: EmergencyStatus) -> EmergencyRecord:
        emergency = self.get_emergency(emergency_id)
        if emergency.user_id != user_id:
            logger.warning(
                "emergency_status_rejected",
                extra={"component": _COMPONENT, "emergency_id": emergency_id, "user_id": user_id},
            )
            raise EmergencyPermissionError(emergency_id, user_id)
        emergency.status = status
        emergency.updated_at = self._clock()

        payload = emergency_view(emergency).to_payload()
        for rider, _ in self._riders_near(emergency.location):
            target = self._store.connection_for(rider.user_id)
            if target is not None:
                self._publish(target, RealtimeEvent.EMERGENCY_UPDATE, payload)
        logger.info(
            "emergency_status_updated",
            extra={"component": _COMPONENT, "emergency_id": emergency_id, "status": status.value},
        )
        return emergency

    def _riders_near(self, location: GeoPoint, exclude_user_id: str | None = None) -> list[tuple[RiderRecord, float]]:
        candidates = (
            (rider, rider.location)
            for rider in self._store.riders()
            if rider.is_online and rider.user_id != exclude_user_id
        )
        return rank_within_radius(location, candidates, self._config.emergency_radius_meters)

    # housekeeping

    def sweep(self, now: datetime | None = None) -> SweepResult:
        now = now or self._clock()
        inactive_before = now - self._config.rider_inactive_after
        purge_before = now - self._config.emergency_retention

        marked_offline = 0
        for rider in self._store.riders():
            if rider.is_online and rider.last_seen < inactive_before:
                rider.is_online = False
                marked_offline += 1
                logger.info(
                    "rider_offline",
                    extra={"component": _COMPONENT, "user_id": rider.user_id, "reason": "inactive"},
                )

        purged = 0
        for emergency in self._store.emergencies():
            if not emergency.is_active and emergency.created_at < purge_before:
                purged += self._store.delete_emergency(emergency.emergency_id)

        return SweepResult(riders_marked_offline=marked_offline, emergencies_purged=purged)

    def counts(self) -> ServiceCounts:
        return ServiceCounts(
            online_riders=self._store.online_rider_count(),
            total_riders=self._store.rider_count(),
            active_emergencies=self._store.active_emergency_count(),
            total_emergencies=self._store.emergency_count(),
            connections=self._store.connection_count(),
            routed_users=self._store.routed_user_count(),
        )

    def _publish(self, connection_id: str, event: RealtimeEvent, payload: object) -> None:
        self._sink.publish(OutboundEvent(connection_id=connection_id, event=event, payload=payload))
