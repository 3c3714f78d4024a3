from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import uuid4

from geo_engine.models import GeoPoint


class EmergencyStatus(StrEnum):
    ACTIVE = "active"
    RESOLVED = "resolved"


class EmergencySeverity(StrEnum):
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class RiderRecord:
    user_id: str
    location: GeoPoint
    last_seen: datetime
    is_online: bool = True
    accuracy: float | None = None
    heading: float | None = None
    speed: float | None = None
    reported_at: datetime | None = None


@dataclass
class EmergencyResponse:
    user_id: str
    response_type: str
    timestamp: datetime
    message: str = ""


@dataclass
class EmergencyRecord:
    emergency_id: str
    user_id: str
    emergency_type: str
    location: GeoPoint
    created_at: datetime
    message: str = ""
    severity: EmergencySeverity = EmergencySeverity.NORMAL
    status: EmergencyStatus = EmergencyStatus.ACTIVE
    responses: list[EmergencyResponse] = field(default_factory=list)
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status is EmergencyStatus.ACTIVE


def new_emergency_id() -> str:
    return uuid4().hex


class RiderStore:
    """Volatile rider directory, connection bindings and emergencies for one process."""

    def __init__(self, id_factory: Callable[[], str] = new_emergency_id) -> None:
        self._id_factory = id_factory
        self._riders: dict[str, RiderRecord] = {}
        self._emergencies: dict[str, EmergencyRecord] = {}
        self._connection_users: dict[str, str] = {}
        self._user_connections: dict[str, str] = {}

    # riders

    def get_rider(self, user_id: str) -> RiderRecord | None:
        return self._riders.get(user_id)

    def put_rider(self, rider: RiderRecord) -> RiderRecord:
        self._riders[rider.user_id] = rider
        return rider

    def riders(self) -> Iterator[RiderRecord]:
        return iter(list(self._riders.values()))

    def rider_count(self) -> int:
        return len(self._riders)

    def online_rider_count(self) -> int:
        return sum(1 for rider in self._riders.values() if rider.is_online)

    # connections

    def bind_connection(self, user_id: str, connection_id: str) -> str | None:
        """Route ``user_id`` to ``connection_id``; returns the connection it replaced."""
        prior_user = self._connection_users.get(connection_id)
        if prior_user not in (None, user_id) and self._user_connections.get(prior_user) == connection_id:
            del self._user_connections[prior_user]
        previous = self._user_connections.get(user_id)
        self._user_connections[user_id] = connection_id
        self._connection_users[connection_id] = user_id
        return previous if previous != connection_id else None

    def unbind_connection(self, connection_id: str) -> tuple[str | None, bool]:
        """Forget ``connection_id``.

        Returns the bound user id and whether this was still the user's current connection.
        """
        user_id = self._connection_users.pop(connection_id, None)
        if user_id is None:
            return None, False
        if self._user_connections.get(user_id) != connection_id:
            return user_id, False
        del self._user_connections[user_id]
        return user_id, True

    def connection_for(self, user_id: str) -> str | None:
        return self._user_connections.get(user_id)

    def connection_count(self) -> int:
        return len(self._connection_users)

    def routed_user_count(self) -> int:
        return len(self._user_connections)

    # emergencies

    def add_emergency(
        self,
        *,
        user_id: str,
        emergency_type: str,
        location: GeoPoint,
        created_at: datetime,
        message: str = "",
        severity: EmergencySeverity = EmergencySeverity.NORMAL,
    ) -> EmergencyRecord:
        emergency_id = self._id_factory()
        while emergency_id in self._emergencies:
            emergency_id = self._id_factory()
        emergency = EmergencyRecord(
            emergency_id=emergency_id,
            user_id=user_id,
            emergency_type=emergency_type,
            location=location,
            created_at=created_at,
            message=message,
            severity=severity,
        )
        self._emergencies[emergency_id] = emergency
        return emergency

    def get_emergency(self, emergency_id: str) -> EmergencyRecord | None:
        return self._emergencies.get(emergency_id)

    def emergencies(self) -> Iterator[EmergencyRecord]:
        return iter(list(self._emergencies.values()))

    def delete_emergency(self, emergency_id: str) -> bool:
        return self._emergencies.pop(emergency_id, None) is not None

    def emergency_count(self) -> int:
        return len(self._emergencies)

    def active_emergency_count(self) -> int:
        return sum(1 for emergency in self._emergencies.values() if emergency.is_active)

    def clear(self) -> None:
        self._riders.clear()
        self._emergencies.clear()
        self._connection_users.clear()
        self._user_connections.clear()
