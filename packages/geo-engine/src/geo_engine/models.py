from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float


def is_valid_coordinates(lat: object, lng: object) -> bool:
    for value in (lat, lng):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if not math.isfinite(value):
            return False
    return -90 <= lat <= 90 and -180 <= lng <= 180  # type: ignore[operator]
