from __future__ import annotations

import csv
import io
import logging
import zipfile
from abc import ABC, abstractmethod
from datetime import date, datetime
from pathlib import Path
from typing import IO, Iterator

from src.domain.algorithms.time_utils import parse_gtfs_time_min
from src.domain.exceptions import InvalidZipError, MissingRequiredFileError
from src.domain.models import GeoPoint, Stop
from src.domain.models.gtfs import (
    CalendarException,
    GtfsFeed,
    GtfsRoute,
    GtfsStopTime,
    GtfsTrip,
    ServiceCalendar,
)

logger = logging.getLogger(__name__)

REQUIRED_FILES = ("stops.txt", "routes.txt", "trips.txt", "stop_times.txt")
OPTIONAL_FILES = ("calendar.txt", "calendar_dates.txt")

ZIP_MAGIC = b"PK\x03\x04"

_WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def validate_zip_bytes(data: bytes) -> None:
    if len(data) < 4 or data[:4] != ZIP_MAGIC:
        raise InvalidZipError("Content is not a valid ZIP file")
    if not zipfile.is_zipfile(io.BytesIO(data)):
        raise InvalidZipError("Content is not a valid ZIP file")


class GtfsTables(ABC):
    """Read access to the .txt tables of one feed."""

    @abstractmethod
    def names(self) -> set[str]:
        raise NotImplementedError

    @abstractmethod
    def open(self, name: str) -> IO[str]:
        raise NotImplementedError

    def close(self) -> None:
        return None

    def __enter__(self) -> "GtfsTables":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class DirectoryTables(GtfsTables):
    def __init__(self, base: str | Path):
        self.base = Path(base)

    def names(self) -> set[str]:
        return {p.name for p in self.base.iterdir() if p.is_file()}

    def open(self, name: str) -> IO[str]:
        return (self.base / name).open("r", encoding="utf-8-sig", newline="")


class ZipTables(GtfsTables):
    """Tables inside a ZIP archive; a single nested folder is tolerated."""

    def __init__(self, source: bytes | str | Path):
        try:
            if isinstance(source, bytes):
                self._zip = zipfile.ZipFile(io.BytesIO(source))
            else:
                self._zip = zipfile.ZipFile(source)
        except zipfile.BadZipFile as exc:
            raise InvalidZipError(str(exc)) from exc

        self._members: dict[str, str] = {}
        for member in self._zip.namelist():
            if member.endswith("/"):
                continue
            self._members.setdefault(member.rsplit("/", 1)[-1], member)

    def names(self) -> set[str]:
        return set(self._members)

    def open(self, name: str) -> IO[str]:
        binary = self._zip.open(self._members[name])
        return io.TextIOWrapper(binary, encoding="utf-8-sig", newline="")

    def close(self) -> None:
        self._zip.close()


def _rows(tables: GtfsTables, name: str) -> Iterator[dict[str, str]]:
    with tables.open(name) as fp:
        reader = csv.DictReader(fp)
        for row in reader:
            yield {
                (k or "").strip(): (v or "").strip()
                for k, v in row.items()
                if isinstance(v, str) or v is None
            }


def _parse_date(raw: str) -> date:
    return datetime.strptime(raw, "%Y%m%d").date()


def parse_stops(tables: GtfsTables, operator_id: str) -> dict[str, Stop]:
    out: dict[str, Stop] = {}
    skipped = 0
    for row in _rows(tables, "stops.txt"):
        stop_id = row.get("stop_id", "")
        if not stop_id:
            skipped += 1
            continue
        try:
            location = GeoPoint(lat=float(row["stop_lat"]), lon=float(row["stop_lon"]))
        except (KeyError, ValueError):
            skipped += 1
            continue
        out[stop_id] = Stop(
            id=stop_id,
            name=row.get("stop_name") or stop_id,
            location=location,
            operator_id=operator_id,
        )
    if skipped:
        logger.warning("%s: skipped %d malformed stops.txt rows", operator_id, skipped)
    return out


def parse_routes(tables: GtfsTables) -> dict[str, GtfsRoute]:
    out: dict[str, GtfsRoute] = {}
    for row in _rows(tables, "routes.txt"):
        route_id = row.get("route_id", "")
        if not route_id:
            continue
        out[route_id] = GtfsRoute(
            route_id=route_id,
            short_name=row.get("route_short_name") or None,
            long_name=row.get("route_long_name") or None,
            color=row.get("route_color") or None,
            text_color=row.get("route_text_color") or None,
        )
    return out


def parse_trips(tables: GtfsTables) -> dict[str, GtfsTrip]:
    out: dict[str, GtfsTrip] = {}
    for row in _rows(tables, "trips.txt"):
        trip_id = row.get("trip_id", "")
        route_id = row.get("route_id", "")
        if not trip_id or not route_id:
            continue
        direction = row.get("direction_id", "")
        out[trip_id] = GtfsTrip(
            trip_id=trip_id,
            route_id=route_id,
            service_id=row.get("service_id") or None,
            direction_id=int(direction) if direction.isdigit() else None,
        )
    return out


def parse_stop_times(
    tables: GtfsTables, operator_id: str
) -> tuple[GtfsStopTime, ...]:
    out: list[GtfsStopTime] = []
    skipped = 0
    for row in _rows(tables, "stop_times.txt"):
        trip_id = row.get("trip_id", "")
        stop_id = row.get("stop_id", "")
        arr_raw = row.get("arrival_time") or row.get("departure_time", "")
        dep_raw = row.get("departure_time") or arr_raw
        # Untimed intermediate stops carry no usable schedule.
        if not trip_id or not stop_id or not arr_raw:
            skipped += 1
            continue
        try:
            out.append(
                GtfsStopTime(
                    trip_id=trip_id,
                    stop_id=stop_id,
                    stop_sequence=int(row.get("stop_sequence", "")),
                    arrival_min=parse_gtfs_time_min(arr_raw),
                    departure_min=parse_gtfs_time_min(dep_raw),
                )
            )
        except ValueError:
            skipped += 1
    if skipped:
        logger.warning(
            "%s: skipped %d malformed stop_times.txt rows", operator_id, skipped
        )
    return tuple(out)


def parse_calendar(tables: GtfsTables) -> dict[str, ServiceCalendar]:
    out: dict[str, ServiceCalendar] = {}
    for row in _rows(tables, "calendar.txt"):
        service_id = row.get("service_id", "")
        if not service_id:
            continue
        try:
            weekdays = tuple(row.get(day) == "1" for day in _WEEKDAYS)
            out[service_id] = ServiceCalendar(
                service_id=service_id,
                weekdays=weekdays,  # type: ignore[arg-type]
                start_date=_parse_date(row["start_date"]),
                end_date=_parse_date(row["end_date"]),
            )
        except (KeyError, ValueError):
            continue
    return out


def parse_calendar_dates(tables: GtfsTables) -> tuple[CalendarException, ...]:
    out: list[CalendarException] = []
    for row in _rows(tables, "calendar_dates.txt"):
        service_id = row.get("service_id", "")
        kind = row.get("exception_type", "")
        if not service_id or kind not in ("1", "2"):
            continue
        try:
            day = _parse_date(row.get("date", ""))
        except ValueError:
            continue
        out.append(CalendarException(service_id=service_id, date=day, added=kind == "1"))
    return tuple(out)


def parse_feed(operator_id: str, tables: GtfsTables) -> GtfsFeed:
    """Parse one operator's tables into a GtfsFeed.

    Raises:
        MissingRequiredFileError: if stops, routes, trips or stop_times is absent.
    """

    names = tables.names()
    missing = [name for name in REQUIRED_FILES if name not in names]
    if missing:
        raise MissingRequiredFileError(
            f"{operator_id}: missing required GTFS files: {missing}"
        )

    feed = GtfsFeed(
        operator_id=operator_id,
        stops_by_id=parse_stops(tables, operator_id),
        routes_by_id=parse_routes(tables),
        trips_by_id=parse_trips(tables),
        stop_times=parse_stop_times(tables, operator_id),
        calendars=parse_calendar(tables) if "calendar.txt" in names else {},
        calendar_exceptions=(
            parse_calendar_dates(tables) if "calendar_dates.txt" in names else ()
        ),
    )
    logger.info(
        "Parsed GTFS feed %s: %d stops, %d routes, %d trips, %d stop_times, "
        "%d calendars, %d calendar exceptions",
        operator_id,
        len(feed.stops_by_id),
        len(feed.routes_by_id),
        len(feed.trips_by_id),
        len(feed.stop_times),
        len(feed.calendars),
        len(feed.calendar_exceptions),
    )
    return feed
