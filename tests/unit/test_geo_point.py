import pytest
from src.domain.models.geo import BoundingBox, GeoPoint


def test_geo_point_accepts_valid_coordinates() -> None:
    p = GeoPoint(lat=28.1234, lon=-15.4321)
    assert p.lat == 28.1234
    assert p.lon == -15.4321


@pytest.mark.parametrize(
    ("lat", "lon"),
    [
        (-90.0001, 0.0),
        (90.0001, 0.0),
        (0.0, -180.0001),
        (0.0, 180.0001),
    ],
)
def test_geo_point_rejects_out_of_range_coordinates(lat: float, lon: float) -> None:
    with pytest.raises(ValueError):
        GeoPoint(lat=lat, lon=lon)


def test_bounding_box_contains_points_inside_radius() -> None:
    center = GeoPoint(lat=40.0, lon=-3.7)
    box = BoundingBox.around(center, 500.0)

    assert box.contains(center)
    # ~333 m north and ~255 m east.
    assert box.contains(GeoPoint(lat=40.003, lon=-3.697))
    assert not box.contains(GeoPoint(lat=40.01, lon=-3.7))


def test_bounding_box_widens_in_longitude_away_from_equator() -> None:
    at_equator = BoundingBox.around(GeoPoint(lat=0.0, lon=0.0), 1000.0)
    north = BoundingBox.around(GeoPoint(lat=60.0, lon=0.0), 1000.0)

    assert (north.max_lon - north.min_lon) > (at_equator.max_lon - at_equator.min_lon)
    assert north.max_lat - north.min_lat == pytest.approx(
        at_equator.max_lat - at_equator.min_lat
    )
