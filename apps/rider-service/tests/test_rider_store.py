from datetime import datetime, timezone

from geo_engine.models import GeoPoint

from rider_service.store import EmergencyStatus, RiderRecord, RiderStore

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
CONNAUGHT_PLACE = GeoPoint(lat=28.6139, lng=77.2090)


def _add(store: RiderStore, user_id: str = "rider-1"):
    return store.add_emergency(
        user_id=user_id,
        emergency_type="breakdown",
        location=CONNAUGHT_PLACE,
        created_at=T0,
    )


def test_bind_connection_last_binding_wins() -> None:
    store = RiderStore()

    assert store.bind_connection("rider-1", "sid-a") is None
    assert store.bind_connection("rider-1", "sid-b") == "sid-a"

    assert store.connection_for("rider-1") == "sid-b"
    assert store.routed_user_count() == 1
    assert store.connection_count() == 2


def test_unbind_stale_connection_keeps_current_route() -> None:
    store = RiderStore()
    store.bind_connection("rider-1", "sid-a")
    store.bind_connection("rider-1", "sid-b")

    assert store.unbind_connection("sid-a") == ("rider-1", False)
    assert store.connection_for("rider-1") == "sid-b"

    assert store.unbind_connection("sid-b") == ("rider-1", True)
    assert store.connection_for("rider-1") is None
    assert store.unbind_connection("sid-b") == (None, False)


def test_rebinding_socket_to_other_user_drops_old_route() -> None:
    store = RiderStore()
    store.bind_connection("rider-1", "sid-a")
    store.bind_connection("rider-2", "sid-a")

    assert store.connection_for("rider-1") is None
    assert store.connection_for("rider-2") == "sid-a"


def test_emergency_ids_are_unique_when_factory_repeats() -> None:
    ids = iter(["dup", "dup", "dup", "fresh"])
    store = RiderStore(id_factory=lambda: next(ids))

    first = _add(store)
    second = _add(store, user_id="rider-2")

    assert first.emergency_id == "dup"
    assert second.emergency_id == "fresh"
    assert store.emergency_count() == 2


def test_default_emergency_ids_are_distinct() -> None:
    store = RiderStore()
    ids = {_add(store).emergency_id for _ in range(50)}
    assert len(ids) == 50


def test_counts_track_online_and_active_state() -> None:
    store = RiderStore()
    store.put_rider(RiderRecord(user_id="rider-1", location=CONNAUGHT_PLACE, last_seen=T0))
    store.put_rider(RiderRecord(user_id="rider-2", location=CONNAUGHT_PLACE, last_seen=T0, is_online=False))
    emergency = _add(store)
    _add(store)
    emergency.status = EmergencyStatus.RESOLVED

    assert store.rider_count() == 2
    assert store.online_rider_count() == 1
    assert store.emergency_count() == 2
    assert store.active_emergency_count() == 1


def test_delete_and_clear() -> None:
    store = RiderStore()
    emergency = _add(store)
    store.bind_connection("rider-1", "sid-a")

    assert store.delete_emergency(emergency.emergency_id) is True
    assert store.delete_emergency(emergency.emergency_id) is False

    store.put_rider(RiderRecord(user_id="rider-1", location=CONNAUGHT_PLACE, last_seen=T0))
    store.clear()
    assert store.rider_count() == 0
    assert store.connection_count() == 0
    assert store.get_rider("rider-1") is None
