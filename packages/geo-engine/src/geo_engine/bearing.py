import math

from geo_engine.models import GeoPoint

COMPASS_POINTS = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")


def initial_bearing_degrees(start: GeoPoint, end: GeoPoint) -> int:
    """Initial great-circle bearing from ``start`` to ``end``, rounded, in [0, 360)."""
    start_lat = math.radians(start.lat)
    end_lat = math.radians(end.lat)
    delta_lng = math.radians(end.lng - start.lng)

    y = math.sin(delta_lng) * math.cos(end_lat)
    x = math.cos(start_lat) * math.sin(end_lat) - math.sin(start_lat) * math.cos(end_lat) * math.cos(delta_lng)
    bearing = (math.degrees(math.atan2(y, x)) + 360) % 360
    return round(bearing) % 360


def compass_direction(bearing_degrees: float) -> str:
    index = round((bearing_degrees % 360) / 45) % len(COMPASS_POINTS)
    return COMPASS_POINTS[index]
