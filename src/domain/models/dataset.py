from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Mapping

import numpy as np

from src.domain.algorithms.geo_utils import points_within_m

from .geo import GeoPoint
from .gtfs import CalendarException, GtfsRoute, GtfsTrip, ServiceCalendar
from .stop import Stop

# (operator_id, service_id)
ServiceKey = tuple[str, str]


@dataclass(frozen=True, slots=True, eq=False)
class TripPattern:
    """Trips of one route that visit exactly the same stop sequence.

    Timetables are (trips x stops) matrices of minutes since midnight; rows
    follow trip_indices, which are ordered by departure from the first stop.
    """

    pattern_id: int
    route_id: str
    stops: np.ndarray  # int32 stop indices, in travel order
    trip_indices: np.ndarray  # int32 dataset trip indices
    arrivals: np.ndarray  # float64 (n_trips, n_stops)
    departures: np.ndarray  # float64 (n_trips, n_stops)

    @property
    def trip_count(self) -> int:
        return int(self.trip_indices.shape[0])

    @property
    def stop_count(self) -> int:
        return int(self.stops.shape[0])


@dataclass(frozen=True, slots=True, eq=False)
class Dataset:
    """Immutable, indexed view of every loaded operator's static schedule.

    Routing code addresses stops and trips by dense integer index. Columns
    are numpy arrays marked read-only so one instance can be shared by
    concurrent routing calls. A reload builds a new Dataset; instances are
    never mutated after construction.
    """

    operators: tuple[str, ...]
    loaded_at: datetime

    # Stops: index <-> id bijection plus parallel coordinate arrays.
    stops: tuple[Stop, ...]
    stop_index: Mapping[str, int]
    stop_lats: np.ndarray
    stop_lons: np.ndarray

    routes_by_id: Mapping[str, GtfsRoute]

    trips: tuple[GtfsTrip, ...]
    trip_operators: tuple[str, ...]
    trip_index: Mapping[str, int]
    trips_by_route: Mapping[str, tuple[str, ...]]

    # Stop-time columns sorted by (trip, stop_sequence).
    st_stop: np.ndarray
    st_trip: np.ndarray
    st_seq: np.ndarray
    st_arr: np.ndarray
    st_dep: np.ndarray

    trip_st_start: np.ndarray
    trip_st_count: np.ndarray

    # Stop-time rows grouped by stop (CSR layout).
    stop_st_rows: np.ndarray
    stop_st_start: np.ndarray
    stop_st_count: np.ndarray

    patterns: tuple[TripPattern, ...]
    # stop index -> ((pattern_id, position), ...)
    patterns_by_stop: Mapping[int, tuple[tuple[int, int], ...]]

    # Service ids are only unique per operator.
    calendars: Mapping[ServiceKey, ServiceCalendar] = field(default_factory=dict)
    # Operators that shipped calendar.txt or calendar_dates.txt rows.
    calendar_operators: frozenset[str] = frozenset()
    calendar_exceptions: Mapping[date, tuple[tuple[str, CalendarException], ...]] = (
        field(default_factory=dict)
    )

    @property
    def stop_count(self) -> int:
        return len(self.stops)

    @property
    def trip_count(self) -> int:
        return len(self.trips)

    @property
    def stop_time_count(self) -> int:
        return int(self.st_stop.shape[0])

    def stop_by_id(self, stop_id: str) -> Stop | None:
        idx = self.stop_index.get(stop_id)
        return None if idx is None else self.stops[idx]

    def stop_times_for_trip(self, trip_idx: int) -> slice:
        """Row slice of the stop-time columns for one trip, in sequence order."""

        start = int(self.trip_st_start[trip_idx])
        return slice(start, start + int(self.trip_st_count[trip_idx]))

    def stop_time_rows_at_stop(self, stop_idx: int) -> np.ndarray:
        """Every stop-time row touching a stop (no particular order)."""

        start = int(self.stop_st_start[stop_idx])
        return self.stop_st_rows[start : start + int(self.stop_st_count[stop_idx])]

    def stops_within(
        self, point: GeoPoint, radius_m: float
    ) -> tuple[np.ndarray, np.ndarray]:
        """(stop indices, distances in meters) of stops within radius_m."""

        return points_within_m(point, self.stop_lats, self.stop_lons, radius_m)

    def active_service_ids(self, day: date) -> frozenset[ServiceKey]:
        active = {key for key, cal in self.calendars.items() if cal.runs_on(day)}
        for operator_id, exc in self.calendar_exceptions.get(day, ()):
            key = (operator_id, exc.service_id)
            if exc.added:
                active.add(key)
            else:
                active.discard(key)
        return frozenset(active)

    def active_trip_mask(self, day: date | None) -> np.ndarray | None:
        """Boolean mask over trip indices, or None when no filtering applies.

        Trips of operators that ship neither calendar.txt nor
        calendar_dates.txt always run.
        """

        if day is None or not self.calendar_operators:
            return None
        active = self.active_service_ids(day)
        dated = self.calendar_operators
        return np.fromiter(
            (
                operator_id not in dated or (operator_id, trip.service_id) in active
                for operator_id, trip in zip(self.trip_operators, self.trips)
            ),
            dtype=bool,
            count=len(self.trips),
        )
