from __future__ import annotations

import math

import numpy as np

from src.domain.models.geo import BoundingBox, GeoPoint

EARTH_RADIUS_M = 6371000.0

# 5 km/h.
DEFAULT_WALK_SPEED_M_PER_MIN = 83.33


def haversine_distance_m(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in meters."""

    lat1 = math.radians(a.lat)
    lon1 = math.radians(a.lon)
    lat2 = math.radians(b.lat)
    lon2 = math.radians(b.lon)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    s = (
        math.sin(dlat / 2.0) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2.0) ** 2
    )
    return 2.0 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, s)))


def haversine_many_m(
    point: GeoPoint, lats: np.ndarray, lons: np.ndarray
) -> np.ndarray:
    """Vectorised great-circle distance from one point to many coordinates."""

    lat1 = math.radians(point.lat)
    lon1 = math.radians(point.lon)
    lat2 = np.radians(lats)
    lon2 = np.radians(lons)

    s = (
        np.sin((lat2 - lat1) / 2.0) ** 2
        + math.cos(lat1) * np.cos(lat2) * np.sin((lon2 - lon1) / 2.0) ** 2
    )
    return 2.0 * EARTH_RADIUS_M * np.arcsin(np.sqrt(np.minimum(1.0, s)))


def bounding_box_mask(
    box: BoundingBox, lats: np.ndarray, lons: np.ndarray
) -> np.ndarray:
    return (
        (lats >= box.min_lat)
        & (lats <= box.max_lat)
        & (lons >= box.min_lon)
        & (lons <= box.max_lon)
    )


def points_within_m(
    center: GeoPoint, lats: np.ndarray, lons: np.ndarray, radius_m: float
) -> tuple[np.ndarray, np.ndarray]:
    """Indices and distances of coordinates within radius_m of center.

    The bounding box discards most candidates before the exact check.
    Results are ordered by index.
    """

    box = BoundingBox.around(center, radius_m)
    candidates = np.flatnonzero(bounding_box_mask(box, lats, lons))
    if candidates.size == 0:
        return candidates, np.empty(0, dtype=np.float64)

    distances = haversine_many_m(center, lats[candidates], lons[candidates])
    keep = distances <= radius_m
    return candidates[keep], distances[keep]


def walking_minutes(
    distance_m: float, speed_m_per_min: float = DEFAULT_WALK_SPEED_M_PER_MIN
) -> float:
    if speed_m_per_min <= 0:
        raise ValueError(f"Invalid walking speed: {speed_m_per_min}")
    return float(distance_m) / float(speed_m_per_min)
