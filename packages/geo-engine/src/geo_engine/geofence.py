from __future__ import annotations

from collections.abc import Iterable
from typing import TypeVar

from geo_engine.distance import haversine_distance_meters
from geo_engine.models import GeoPoint

T = TypeVar("T")


def is_point_inside_radius(center: GeoPoint, point: GeoPoint, radius_meters: float) -> bool:
    if radius_meters < 0:
        raise ValueError("radius_meters must be >= 0")
    return haversine_distance_meters(center, point) <= radius_meters


def rank_within_radius(
    center: GeoPoint,
    candidates: Iterable[tuple[T, GeoPoint]],
    radius_meters: float,
) -> list[tuple[T, float]]:
    """Keep candidates within ``radius_meters`` of ``center``, nearest first.

    Linear scan; ties keep their input order.
    """
    if radius_meters < 0:
        raise ValueError("radius_meters must be >= 0")
    ranked: list[tuple[T, float]] = []
    for item, point in candidates:
        distance_meters = haversine_distance_meters(center, point)
        if distance_meters <= radius_meters:
            ranked.append((item, distance_meters))
    ranked.sort(key=lambda pair: pair[1])
    return ranked
