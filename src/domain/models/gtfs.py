from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from .stop import Stop


@dataclass(frozen=True, slots=True)
class GtfsRoute:
    route_id: str
    short_name: str | None = None
    long_name: str | None = None
    color: str | None = None  # hex without '#'
    text_color: str | None = None  # hex without '#'


@dataclass(frozen=True, slots=True)
class GtfsTrip:
    trip_id: str
    route_id: str
    service_id: str | None = None
    direction_id: int | None = None


@dataclass(frozen=True, slots=True)
class GtfsStopTime:
    """One row of stop_times.txt.

    Times are minutes since service day midnight (GTFS time semantics; may
    exceed 24h), with fractional minutes for the seconds part.
    """

    trip_id: str
    stop_id: str
    stop_sequence: int
    arrival_min: float
    departure_min: float


@dataclass(frozen=True, slots=True)
class ServiceCalendar:
    """calendar.txt row. weekdays is indexed like date.weekday() (Monday=0)."""

    service_id: str
    weekdays: tuple[bool, bool, bool, bool, bool, bool, bool]
    start_date: date
    end_date: date

    def runs_on(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date and self.weekdays[day.weekday()]


@dataclass(frozen=True, slots=True)
class CalendarException:
    """calendar_dates.txt row (exception_type 1 = added, 2 = removed)."""

    service_id: str
    date: date
    added: bool


@dataclass(frozen=True, slots=True)
class GtfsFeed:
    """Parsed static tables of a single operator's feed."""

    operator_id: str
    stops_by_id: dict[str, Stop]
    routes_by_id: dict[str, GtfsRoute]
    trips_by_id: dict[str, GtfsTrip]
    stop_times: tuple[GtfsStopTime, ...]
    calendars: dict[str, ServiceCalendar] = field(default_factory=dict)
    calendar_exceptions: tuple[CalendarException, ...] = ()
