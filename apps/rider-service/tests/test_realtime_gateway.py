import logging

import pytest
from geo_engine.models import GeoPoint

from rider_service.broadcast import ProximityBroadcastService
from rider_service.events import EventDispatcher, OutboundEvent, RealtimeEvent
from rider_service.realtime import RealtimeGateway
from rider_service.store import RiderStore


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[OutboundEvent] = []

    def publish(self, event: OutboundEvent) -> None:
        self.events.append(event)

    def sent_to(self, connection_id: str, event: RealtimeEvent) -> list:
        return [item.payload for item in self.events if item.connection_id == connection_id and item.event is event]


class NullTransport:
    async def emit(self, event: str, payload: object, to: str) -> None:
        return None


class FakeServer:
    def __init__(self) -> None:
        self.handlers: dict[str, object] = {}

    def on(self, event: str, handler=None) -> None:
        self.handlers[event] = handler


def _gateway() -> tuple[RealtimeGateway, RiderStore, RecordingSink]:
    store = RiderStore()
    sink = RecordingSink()
    service = ProximityBroadcastService(store, sink)
    return RealtimeGateway(service, EventDispatcher(NullTransport())), store, sink


def _location(user_id: str, lat: float, lng: float) -> dict:
    return {"userId": user_id, "location": {"lat": lat, "lng": lng}, "timestamp": "2026-03-01T09:00:00Z"}


def test_register_wires_all_socket_events() -> None:
    gateway, _, _ = _gateway()
    server = FakeServer()

    gateway.register(server)

    assert set(server.handlers) == {
        "connect",
        "join-user-room",
        "location-update",
        "emergency-broadcast",
        "emergency-respond",
        "disconnect",
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        None,
        "28.6,77.2",
        {"userId": "rider-a"},
        {"userId": "rider-a", "location": {"lat": 28.6139}},
        {"userId": "rider-a", "location": {"lat": "28.6139", "lng": 77.2090}},
        {"userId": "rider-a", "location": {"lat": 128.0, "lng": 77.2090}},
        {"userId": "", "location": {"lat": 28.6139, "lng": 77.2090}},
        {"userId": "rider-a", "location": {"lat": 28.6139, "lng": 77.2090}, "timestamp": "yesterday"},
    ],
)
async def test_malformed_location_update_is_dropped(payload, caplog) -> None:
    gateway, store, sink = _gateway()

    with caplog.at_level(logging.WARNING, logger="rider_service.realtime"):
        await gateway.on_location_update("sid-a", payload)

    assert store.get_rider("rider-a") is None
    assert sink.events == []
    assert "invalid_location_update" in caplog.text


@pytest.mark.asyncio
async def test_malformed_update_keeps_previous_location() -> None:
    gateway, store, _ = _gateway()
    await gateway.on_location_update("sid-a", _location("rider-a", 28.6139, 77.2090))

    await gateway.on_location_update("sid-a", {"userId": "rider-a", "location": {"lat": None, "lng": 77.3}})

    assert store.get_rider("rider-a").location == GeoPoint(lat=28.6139, lng=77.2090)


@pytest.mark.asyncio
async def test_join_and_location_update_route_events_to_socket() -> None:
    gateway, store, sink = _gateway()
    await gateway.on_connect("sid-a", {})
    await gateway.on_join_user_room("sid-a", "rider-a")
    await gateway.on_join_user_room("sid-b", "rider-b")

    await gateway.on_location_update("sid-a", _location("rider-a", 28.6139, 77.2090))
    await gateway.on_location_update("sid-b", _location("rider-b", 28.6145, 77.2100))

    assert store.connection_for("rider-a") == "sid-a"
    assert store.get_rider("rider-b").reported_at is not None
    (update,) = sink.sent_to("sid-a", RealtimeEvent.RIDER_LOCATION_UPDATE)
    assert update["userId"] == "rider-b"


@pytest.mark.asyncio
async def test_join_accepts_numeric_user_id_and_rejects_blank() -> None:
    gateway, store, _ = _gateway()

    await gateway.on_join_user_room("sid-a", 4242)
    await gateway.on_join_user_room("sid-b", "  <>  ")
    await gateway.on_join_user_room("sid-c", True)

    assert store.connection_for("4242") == "sid-a"
    assert store.connection_count() == 1


@pytest.mark.asyncio
async def test_numeric_user_id_is_accepted_on_every_event() -> None:
    gateway, store, sink = _gateway()
    await gateway.on_join_user_room("sid-creator", 4242)
    await gateway.on_join_user_room("sid-helper", 7777)

    await gateway.on_location_update(
        "sid-helper",
        {"userId": 7777, "location": {"lat": 28.6145, "lng": 77.2100}},
    )
    await gateway.on_emergency_broadcast(
        "sid-creator",
        {"userId": 4242, "type": "breakdown", "location": {"lat": 28.6139, "lng": 77.2090}},
    )
    (alert,) = sink.sent_to("sid-helper", RealtimeEvent.EMERGENCY_ALERT)
    await gateway.on_emergency_respond(
        "sid-helper",
        {"emergencyId": alert["id"], "userId": 7777, "responseType": "on-the-way"},
    )

    assert store.get_rider("7777") is not None
    assert alert["userId"] == "4242"
    (notice,) = sink.sent_to("sid-creator", RealtimeEvent.EMERGENCY_RESPONSE)
    assert notice["response"]["userId"] == "7777"


@pytest.mark.asyncio
async def test_boolean_user_id_is_rejected() -> None:
    gateway, store, _ = _gateway()

    await gateway.on_location_update("sid-a", {"userId": True, "location": {"lat": 28.6139, "lng": 77.2090}})

    assert store.rider_count() == 0


@pytest.mark.asyncio
async def test_emergency_broadcast_and_respond_over_socket() -> None:
    gateway, store, sink = _gateway()
    await gateway.on_join_user_room("sid-creator", "creator")
    await gateway.on_join_user_room("sid-helper", "helper")
    await gateway.on_location_update("sid-helper", _location("helper", 28.6145, 77.2100))

    await gateway.on_emergency_broadcast(
        "sid-creator",
        {
            "userId": "creator",
            "type": "accident",
            "message": "<b>Need help</b>",
            "location": {"lat": 28.6139, "lng": 77.2090},
            "severity": "critical",
        },
    )
    (alert,) = sink.sent_to("sid-helper", RealtimeEvent.EMERGENCY_ALERT)
    assert alert["message"] == "bNeed help/b"
    assert alert["priority"] == "immediate"

    await gateway.on_emergency_respond(
        "sid-helper",
        {"emergencyId": alert["id"], "userId": "helper", "responseType": "on-the-way"},
    )

    (notice,) = sink.sent_to("sid-creator", RealtimeEvent.EMERGENCY_RESPONSE)
    assert notice["emergencyId"] == alert["id"]
    assert len(store.get_emergency(alert["id"]).responses) == 1


@pytest.mark.asyncio
async def test_invalid_emergency_broadcast_creates_nothing() -> None:
    gateway, store, sink = _gateway()

    await gateway.on_emergency_broadcast("sid-a", {"userId": "rider-a", "location": {"lat": 28.6, "lng": 77.2}})

    assert store.emergency_count() == 0
    assert sink.events == []


@pytest.mark.asyncio
async def test_respond_to_unknown_emergency_is_logged(caplog) -> None:
    gateway, _, sink = _gateway()

    with caplog.at_level(logging.WARNING, logger="rider_service.realtime"):
        await gateway.on_emergency_respond(
            "sid-a",
            {"emergencyId": "missing", "userId": "rider-a", "responseType": "on-the-way"},
        )

    assert "emergency_response_unknown_emergency" in caplog.text
    assert sink.events == []


@pytest.mark.asyncio
async def test_disconnect_marks_rider_offline() -> None:
    gateway, store, _ = _gateway()
    await gateway.on_join_user_room("sid-a", "rider-a")
    await gateway.on_location_update("sid-a", _location("rider-a", 28.6139, 77.2090))

    await gateway.on_disconnect("sid-a", "client disconnect")

    assert store.get_rider("rider-a").is_online is False
    assert store.connection_for("rider-a") is None
