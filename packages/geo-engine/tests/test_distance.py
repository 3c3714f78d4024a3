import math

import pytest

from geo_engine.distance import EARTH_RADIUS_METERS, format_distance, haversine_distance_meters
from geo_engine.models import GeoPoint, is_valid_coordinates


def test_haversine_distance_is_zero_for_same_point() -> None:
    point = GeoPoint(lat=28.6139, lng=77.2090)
    distance = haversine_distance_meters(point, point)
    assert distance == 0.0


def test_haversine_distance_between_nearby_riders() -> None:
    connaught_place = GeoPoint(lat=28.6139, lng=77.2090)
    next_block = GeoPoint(lat=28.6145, lng=77.2100)
    distance = haversine_distance_meters(connaught_place, next_block)
    assert 100 < distance < 140


def test_haversine_distance_is_symmetric() -> None:
    delhi = GeoPoint(lat=28.6139, lng=77.2090)
    gurugram = GeoPoint(lat=28.4595, lng=77.0266)
    assert haversine_distance_meters(delhi, gurugram) == pytest.approx(haversine_distance_meters(gurugram, delhi))


def test_one_degree_of_latitude_is_about_111_km() -> None:
    distance = haversine_distance_meters(GeoPoint(lat=0.0, lng=0.0), GeoPoint(lat=1.0, lng=0.0))
    assert distance == pytest.approx(111_195, rel=1e-3)


def test_format_distance_switches_to_kilometers() -> None:
    assert format_distance(118.3) == "118m"
    assert format_distance(1500) == "1.5km"


@pytest.mark.parametrize(
    ("lat", "lng", "expected"),
    [
        (28.6139, 77.2090, True),
        (0, 0, True),
        (90, 180, True),
        (90.1, 0, False),
        (0, -180.5, False),
        ("28.6", 77.2, False),
        (None, 77.2, False),
        (True, 77.2, False),
        (float("nan"), 77.2, False),
    ],
)
def test_is_valid_coordinates(lat: object, lng: object, expected: bool) -> None:
    assert is_valid_coordinates(lat, lng) is expected


@pytest.mark.parametrize(
    ("start", "end"),
    [
        (GeoPoint(lat=0.0, lng=0.0), GeoPoint(lat=0.0, lng=180.0)),
        (GeoPoint(lat=45.0, lng=10.0), GeoPoint(lat=-45.0, lng=-170.0)),
        (GeoPoint(lat=28.6139, lng=77.2090), GeoPoint(lat=-28.6139, lng=-102.7910)),
        (GeoPoint(lat=90.0, lng=0.0), GeoPoint(lat=-90.0, lng=0.0)),
    ],
)
def test_haversine_distance_for_antipodal_points_is_half_circumference(start: GeoPoint, end: GeoPoint) -> None:
    distance = haversine_distance_meters(start, end)
    assert distance == pytest.approx(math.pi * EARTH_RADIUS_METERS, rel=1e-6)
