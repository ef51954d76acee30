from __future__ import annotations

import io
import zipfile
from datetime import date
from typing import Callable

import pytest

from src.domain.algorithms.time_utils import parse_gtfs_time_min
from src.domain.models.geo import GeoPoint
from src.domain.models.gtfs import (
    CalendarException,
    GtfsFeed,
    GtfsRoute,
    GtfsStopTime,
    GtfsTrip,
    ServiceCalendar,
)
from src.domain.models.stop import Stop


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class FeedBuilder:
    """Small fluent builder for synthetic single-operator feeds."""

    def __init__(self, operator_id: str = "op") -> None:
        self.operator_id = operator_id
        self.stops: dict[str, Stop] = {}
        self.routes: dict[str, GtfsRoute] = {}
        self.trips: dict[str, GtfsTrip] = {}
        self.stop_times: list[GtfsStopTime] = []
        self.calendars: dict[str, ServiceCalendar] = {}
        self.exceptions: list[CalendarException] = []

    def stop(self, stop_id: str, lat: float, lon: float, name: str | None = None):
        self.stops[stop_id] = Stop(
            id=stop_id,
            name=name or f"Stop {stop_id}",
            location=GeoPoint(lat=lat, lon=lon),
            operator_id=self.operator_id,
        )
        return self

    def route(self, route_id: str, short_name: str | None = None):
        self.routes[route_id] = GtfsRoute(
            route_id=route_id, short_name=short_name or route_id
        )
        return self

    def trip(
        self,
        trip_id: str,
        route_id: str,
        times: list[tuple],
        service_id: str | None = None,
    ):
        """times: (stop_id, "HH:MM") or (stop_id, arrival, departure) per stop."""

        if route_id not in self.routes:
            self.route(route_id)
        self.trips[trip_id] = GtfsTrip(
            trip_id=trip_id, route_id=route_id, service_id=service_id
        )
        for seq, entry in enumerate(times, start=1):
            stop_id, arr = entry[0], entry[1]
            dep = entry[2] if len(entry) > 2 else arr
            self.stop_times.append(
                GtfsStopTime(
                    trip_id=trip_id,
                    stop_id=stop_id,
                    stop_sequence=seq,
                    arrival_min=parse_gtfs_time_min(arr),
                    departure_min=parse_gtfs_time_min(dep),
                )
            )
        return self

    def calendar(
        self,
        service_id: str,
        weekdays: tuple[bool, ...],
        start: date = date(2026, 1, 1),
        end: date = date(2026, 12, 31),
    ):
        self.calendars[service_id] = ServiceCalendar(
            service_id=service_id,
            weekdays=weekdays,  # type: ignore[arg-type]
            start_date=start,
            end_date=end,
        )
        return self

    def exception(self, service_id: str, day: date, added: bool):
        self.exceptions.append(
            CalendarException(service_id=service_id, date=day, added=added)
        )
        return self

    def build(self) -> GtfsFeed:
        return GtfsFeed(
            operator_id=self.operator_id,
            stops_by_id=dict(self.stops),
            routes_by_id=dict(self.routes),
            trips_by_id=dict(self.trips),
            stop_times=tuple(self.stop_times),
            calendars=dict(self.calendars),
            calendar_exceptions=tuple(self.exceptions),
        )


@pytest.fixture
def feed_builder() -> Callable[..., FeedBuilder]:
    return FeedBuilder


# Minimal valid GTFS tables: route "10" from S1 to S2 (about 2 km apart),
# weekdays only, removed on Christmas day.
GTFS_TABLES: dict[str, str] = {
    "stops.txt": (
        "stop_id,stop_name,stop_lat,stop_lon\n"
        "S1,First Street,0.0,0.0\n"
        "S2,Second Avenue,0.018,0.0\n"
    ),
    "routes.txt": (
        "route_id,agency_id,route_short_name,route_long_name,route_type,route_color\n"
        "R10,A,10,Center - North,3,FF0000\n"
    ),
    "trips.txt": "route_id,service_id,trip_id,direction_id\nR10,WK,T1,0\n",
    "stop_times.txt": (
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "T1,08:10:00,08:10:00,S1,1\n"
        "T1,08:25:00,08:25:00,S2,2\n"
    ),
    "calendar.txt": (
        "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,"
        "start_date,end_date\n"
        "WK,1,1,1,1,1,0,0,20260101,20261231\n"
    ),
    "calendar_dates.txt": "service_id,date,exception_type\nWK,20261225,2\n",
}


def _zip_bytes(tables: dict[str, str], folder: str = "") -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in tables.items():
            zf.writestr(folder + name, content)
    return buf.getvalue()


@pytest.fixture
def gtfs_tables() -> dict[str, str]:
    return dict(GTFS_TABLES)


@pytest.fixture
def make_gtfs_zip() -> Callable[..., bytes]:
    def _make(tables: dict[str, str] | None = None, folder: str = "") -> bytes:
        return _zip_bytes(GTFS_TABLES if tables is None else tables, folder)

    return _make
