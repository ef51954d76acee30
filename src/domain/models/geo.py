from __future__ import annotations

import math
from dataclasses import dataclass

# Mean meters per degree of latitude (R = 6371 km).
METERS_PER_DEGREE = 6371000.0 * math.pi / 180.0


@dataclass(frozen=True, slots=True)
class GeoPoint:
    lat: float
    lon: float

    def __post_init__(self) -> None:
        if not (-90.0 <= self.lat <= 90.0):
            raise ValueError(f"Invalid latitude: {self.lat}")
        if not (-180.0 <= self.lon <= 180.0):
            raise ValueError(f"Invalid longitude: {self.lon}")


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Lat/lon rectangle used as a cheap pre-filter before exact distances."""

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @staticmethod
    def around(center: GeoPoint, radius_m: float) -> "BoundingBox":
        d_lat = radius_m / METERS_PER_DEGREE
        cos_lat = math.cos(math.radians(center.lat))
        # Near the poles the box degenerates to the full longitude range.
        if cos_lat < 1e-6:
            d_lon = 180.0
        else:
            d_lon = min(180.0, radius_m / (METERS_PER_DEGREE * cos_lat))
        return BoundingBox(
            min_lat=center.lat - d_lat,
            max_lat=center.lat + d_lat,
            min_lon=center.lon - d_lon,
            max_lon=center.lon + d_lon,
        )

    def contains(self, point: GeoPoint) -> bool:
        return (
            self.min_lat <= point.lat <= self.max_lat
            and self.min_lon <= point.lon <= self.max_lon
        )
