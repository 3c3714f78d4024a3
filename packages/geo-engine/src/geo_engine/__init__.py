"""Geo engine core package."""

from geo_engine.bearing import compass_direction, initial_bearing_degrees
from geo_engine.distance import EARTH_RADIUS_METERS, format_distance, haversine_distance_meters
from geo_engine.geofence import is_point_inside_radius, rank_within_radius
from geo_engine.models import GeoPoint, is_valid_coordinates

__all__ = [
    "EARTH_RADIUS_METERS",
    "GeoPoint",
    "compass_direction",
    "format_distance",
    "haversine_distance_meters",
    "initial_bearing_degrees",
    "is_point_inside_radius",
    "is_valid_coordinates",
    "rank_within_radius",
]
