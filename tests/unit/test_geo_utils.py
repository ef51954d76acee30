from __future__ import annotations

import numpy as np
import pytest

from src.domain.algorithms.geo_utils import (
    haversine_distance_m,
    haversine_many_m,
    points_within_m,
    walking_minutes,
)
from src.domain.models.geo import GeoPoint


def test_haversine_zero_for_identical_points() -> None:
    p = GeoPoint(lat=28.1, lon=-15.4)
    assert haversine_distance_m(p, p) == 0.0


def test_haversine_is_symmetric_and_reasonable_scale() -> None:
    # 0.018 degrees of latitude is about 2 km.
    a = GeoPoint(lat=0.0, lon=0.0)
    b = GeoPoint(lat=0.018, lon=0.0)

    d1 = haversine_distance_m(a, b)
    d2 = haversine_distance_m(b, a)

    assert abs(d1 - d2) < 1e-6
    assert 1990.0 < d1 < 2010.0


def test_vectorised_distances_match_scalar() -> None:
    center = GeoPoint(lat=28.1, lon=-15.4)
    lats = np.array([28.1, 28.11, 28.2, 27.9])
    lons = np.array([-15.4, -15.41, -15.3, -15.5])

    many = haversine_many_m(center, lats, lons)

    for i in range(len(lats)):
        expected = haversine_distance_m(center, GeoPoint(lat=lats[i], lon=lons[i]))
        assert many[i] == pytest.approx(expected, rel=1e-9, abs=1e-6)


def test_points_within_radius_are_filtered_and_index_ordered() -> None:
    center = GeoPoint(lat=0.0, lon=0.0)
    # ~556 m, ~111 m, ~2 km, ~222 m
    lats = np.array([0.005, 0.001, 0.018, 0.0])
    lons = np.array([0.0, 0.0, 0.0, 0.002])

    idx, dist = points_within_m(center, lats, lons, 500.0)

    assert idx.tolist() == [1, 3]
    assert dist[0] == pytest.approx(111.19, abs=0.1)
    assert dist[1] == pytest.approx(222.39, abs=0.1)


def test_points_within_radius_is_symmetric_between_two_stops() -> None:
    a = GeoPoint(lat=0.018, lon=0.0)
    b = GeoPoint(lat=0.018, lon=0.0018)
    lats = np.array([a.lat, b.lat])
    lons = np.array([a.lon, b.lon])

    from_a, _ = points_within_m(a, lats, lons, 500.0)
    from_b, _ = points_within_m(b, lats, lons, 500.0)

    assert 1 in from_a.tolist()
    assert 0 in from_b.tolist()


def test_points_within_radius_handles_empty_input() -> None:
    idx, dist = points_within_m(
        GeoPoint(lat=0.0, lon=0.0), np.array([]), np.array([]), 100.0
    )
    assert idx.size == 0
    assert dist.size == 0


def test_walking_minutes_uses_speed() -> None:
    assert walking_minutes(833.3, 83.33) == pytest.approx(10.0)
    assert walking_minutes(0.0) == 0.0
    with pytest.raises(ValueError):
        walking_minutes(100.0, 0.0)
