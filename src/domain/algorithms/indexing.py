from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Iterable

import numpy as np

from src.domain.models.dataset import Dataset, ServiceKey, TripPattern
from src.domain.models.gtfs import (
    CalendarException,
    GtfsFeed,
    GtfsRoute,
    GtfsStopTime,
    GtfsTrip,
    ServiceCalendar,
)
from src.domain.models.stop import Stop

logger = logging.getLogger(__name__)


class TripRejected(ValueError):
    """A trip violates the stop-time invariants and is left out of the dataset."""


def _frozen(values: np.ndarray) -> np.ndarray:
    values.setflags(write=False)
    return values


def validate_trip_stop_times(
    rows: list[GtfsStopTime], stop_index: dict[str, int]
) -> list[tuple[int, int, float, float]]:
    """Order a trip's stop times and check the schedule invariants.

    Returns (stop_idx, stop_sequence, arrival_min, departure_min) tuples.
    A departure earlier than the arrival at the same stop is clamped up to the
    arrival; every other violation rejects the whole trip.
    """

    ordered = sorted(rows, key=lambda st: st.stop_sequence)
    out: list[tuple[int, int, float, float]] = []
    prev_seq: int | None = None
    prev_dep: float | None = None

    for st in ordered:
        stop_idx = stop_index.get(st.stop_id)
        if stop_idx is None:
            raise TripRejected(f"unknown stop_id {st.stop_id!r}")
        if prev_seq is not None and st.stop_sequence <= prev_seq:
            raise TripRejected(f"stop_sequence {st.stop_sequence} is not increasing")

        arr = st.arrival_min
        dep = max(st.departure_min, arr)
        if prev_dep is not None and arr < prev_dep:
            raise TripRejected(
                f"arrival at sequence {st.stop_sequence} precedes previous departure"
            )

        out.append((stop_idx, st.stop_sequence, arr, dep))
        prev_seq = st.stop_sequence
        prev_dep = dep

    return out


def build_dataset(
    feeds: Iterable[GtfsFeed], *, loaded_at: datetime | None = None
) -> Dataset:
    """Merge per-operator feeds into one immutable, indexed Dataset.

    Stop, route and trip ids are global: when two operators share an id the
    first one loaded wins and later duplicates are skipped.
    """

    operators: list[str] = []
    stops: list[Stop] = []
    stop_index: dict[str, int] = {}
    routes_by_id: dict[str, GtfsRoute] = {}

    trips: list[GtfsTrip] = []
    trip_operators: list[str] = []
    trip_index: dict[str, int] = {}

    col_stop: list[int] = []
    col_trip: list[int] = []
    col_seq: list[int] = []
    col_arr: list[float] = []
    col_dep: list[float] = []
    trip_start: list[int] = []
    trip_count: list[int] = []

    calendars: dict[ServiceKey, ServiceCalendar] = {}
    exceptions_by_date: dict[date, list[tuple[str, CalendarException]]] = defaultdict(
        list
    )

    calendar_operators: set[str] = set()
    rejected = 0

    for feed in feeds:
        op = feed.operator_id
        operators.append(op)

        duplicate_stops = 0
        for stop_id, stop in feed.stops_by_id.items():
            if stop_id in stop_index:
                duplicate_stops += 1
                continue
            stop_index[stop_id] = len(stops)
            stops.append(stop)

        for route_id, route in feed.routes_by_id.items():
            if route_id in routes_by_id:
                logger.warning(
                    "Skipping duplicate route %s from operator %s", route_id, op
                )
                continue
            routes_by_id[route_id] = route

        if feed.calendars or feed.calendar_exceptions:
            calendar_operators.add(op)
        for key, cal in feed.calendars.items():
            calendars[(op, key)] = cal
        for exc in feed.calendar_exceptions:
            exceptions_by_date[exc.date].append((op, exc))

        rows_by_trip: dict[str, list[GtfsStopTime]] = defaultdict(list)
        for st in feed.stop_times:
            rows_by_trip[st.trip_id].append(st)

        accepted = 0
        for trip_id, trip in feed.trips_by_id.items():
            rows = rows_by_trip.get(trip_id)
            if not rows or len(rows) < 2:
                continue
            if trip_id in trip_index:
                logger.warning(
                    "Skipping duplicate trip %s from operator %s", trip_id, op
                )
                continue

            try:
                checked = validate_trip_stop_times(rows, stop_index)
            except TripRejected as exc:
                rejected += 1
                logger.warning(
                    "Rejected trip %s from operator %s: %s", trip_id, op, exc
                )
                continue

            t_idx = len(trips)
            trip_index[trip_id] = t_idx
            trips.append(trip)
            trip_operators.append(op)
            trip_start.append(len(col_stop))
            trip_count.append(len(checked))
            for stop_idx, seq, arr, dep in checked:
                col_stop.append(stop_idx)
                col_trip.append(t_idx)
                col_seq.append(seq)
                col_arr.append(arr)
                col_dep.append(dep)
            accepted += 1

        orphan_trips = len(set(rows_by_trip) - set(feed.trips_by_id))
        logger.info(
            "Indexed operator %s: %d stops (%d duplicate ids), %d trips accepted, "
            "%d stop_times trip ids missing from trips.txt",
            op,
            len(feed.stops_by_id),
            duplicate_stops,
            accepted,
            orphan_trips,
        )

    st_stop = np.asarray(col_stop, dtype=np.int32)
    st_trip = np.asarray(col_trip, dtype=np.int32)
    st_arr = np.asarray(col_arr, dtype=np.float64)
    st_dep = np.asarray(col_dep, dtype=np.float64)
    trip_st_start = np.asarray(trip_start, dtype=np.int32)
    trip_st_count = np.asarray(trip_count, dtype=np.int32)

    # CSR index: stop -> stop-time rows.
    n_stops = len(stops)
    stop_st_count = np.bincount(st_stop, minlength=n_stops).astype(np.int32)
    stop_st_start = np.zeros(n_stops, dtype=np.int32)
    if n_stops > 1:
        stop_st_start[1:] = np.cumsum(stop_st_count)[:-1]
    stop_st_rows = np.argsort(st_stop, kind="stable").astype(np.int32)

    trips_by_route: dict[str, list[str]] = defaultdict(list)
    for trip in trips:
        trips_by_route[trip.route_id].append(trip.trip_id)

    patterns, trip_pattern = _build_patterns(
        trips, st_stop, st_arr, st_dep, trip_st_start, trip_st_count
    )
    patterns_by_stop = _patterns_by_stop(st_stop, st_trip, trip_st_start, trip_pattern)

    dataset = Dataset(
        operators=tuple(operators),
        loaded_at=loaded_at or datetime.now(timezone.utc),
        stops=tuple(stops),
        stop_index=stop_index,
        stop_lats=_frozen(
            np.asarray([s.location.lat for s in stops], dtype=np.float64)
        ),
        stop_lons=_frozen(
            np.asarray([s.location.lon for s in stops], dtype=np.float64)
        ),
        routes_by_id=routes_by_id,
        trips=tuple(trips),
        trip_operators=tuple(trip_operators),
        trip_index=trip_index,
        trips_by_route={k: tuple(v) for k, v in trips_by_route.items()},
        st_stop=_frozen(st_stop),
        st_trip=_frozen(st_trip),
        st_seq=_frozen(np.asarray(col_seq, dtype=np.int32)),
        st_arr=_frozen(st_arr),
        st_dep=_frozen(st_dep),
        trip_st_start=_frozen(trip_st_start),
        trip_st_count=_frozen(trip_st_count),
        stop_st_rows=_frozen(stop_st_rows),
        stop_st_start=_frozen(stop_st_start),
        stop_st_count=_frozen(stop_st_count),
        patterns=patterns,
        patterns_by_stop=patterns_by_stop,
        calendars=calendars,
        calendar_operators=frozenset(calendar_operators),
        calendar_exceptions={d: tuple(v) for d, v in exceptions_by_date.items()},
    )

    logger.info(
        "Dataset ready: %d operators, %d stops, %d trips, %d stop_times, "
        "%d patterns, %d trips rejected",
        len(operators),
        dataset.stop_count,
        dataset.trip_count,
        dataset.stop_time_count,
        len(patterns),
        rejected,
    )
    return dataset


def _build_patterns(
    trips: list[GtfsTrip],
    st_stop: np.ndarray,
    st_arr: np.ndarray,
    st_dep: np.ndarray,
    trip_st_start: np.ndarray,
    trip_st_count: np.ndarray,
) -> tuple[tuple[TripPattern, ...], np.ndarray]:
    """Group trips by (route, stop sequence); returns patterns and trip->pattern."""

    groups: dict[tuple[str, tuple[int, ...]], list[int]] = {}
    for t_idx, trip in enumerate(trips):
        start = int(trip_st_start[t_idx])
        seq = tuple(int(s) for s in st_stop[start : start + int(trip_st_count[t_idx])])
        groups.setdefault((trip.route_id, seq), []).append(t_idx)

    trip_pattern = np.full(len(trips), -1, dtype=np.int32)
    patterns: list[TripPattern] = []
    for (route_id, seq), members in groups.items():
        n = len(seq)
        members.sort(key=lambda t: (float(st_dep[trip_st_start[t]]), t))
        arrivals = np.empty((len(members), n), dtype=np.float64)
        departures = np.empty((len(members), n), dtype=np.float64)
        for row, t_idx in enumerate(members):
            start = int(trip_st_start[t_idx])
            arrivals[row] = st_arr[start : start + n]
            departures[row] = st_dep[start : start + n]

        pattern_id = len(patterns)
        trip_pattern[members] = pattern_id
        patterns.append(
            TripPattern(
                pattern_id=pattern_id,
                route_id=route_id,
                stops=_frozen(np.asarray(seq, dtype=np.int32)),
                trip_indices=_frozen(np.asarray(members, dtype=np.int32)),
                arrivals=_frozen(arrivals),
                departures=_frozen(departures),
            )
        )

    return tuple(patterns), _frozen(trip_pattern)


def _patterns_by_stop(
    st_stop: np.ndarray,
    st_trip: np.ndarray,
    trip_st_start: np.ndarray,
    trip_pattern: np.ndarray,
) -> dict[int, tuple[tuple[int, int], ...]]:
    """Derive stop -> (pattern, position) pairs from the stop-time rows."""

    if st_stop.size == 0:
        return {}

    positions = np.arange(st_stop.size, dtype=np.int64) - trip_st_start[st_trip]
    triples = np.unique(
        np.stack([st_stop, trip_pattern[st_trip], positions], axis=1), axis=0
    )

    out: dict[int, list[tuple[int, int]]] = defaultdict(list)
    for stop_idx, pattern_id, pos in triples.tolist():
        out[stop_idx].append((pattern_id, pos))
    return {k: tuple(v) for k, v in out.items()}
