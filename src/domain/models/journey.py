from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .geo import GeoPoint
from .stop import Stop


class TravelMode(str, Enum):
    WALK = "walk"
    BUS = "bus"


@dataclass(frozen=True, slots=True)
class TransitLine:
    """Public transit line metadata (subset of GTFS routes.txt)."""

    route_id: str
    short_name: str | None = None
    long_name: str | None = None
    color: str | None = None  # hex without '#', per GTFS
    text_color: str | None = None  # hex without '#', per GTFS


@dataclass(frozen=True, slots=True)
class JourneyLeg:
    """A walk or a single bus ride. Times are minutes since service-day midnight."""

    mode: TravelMode
    origin: GeoPoint
    destination: GeoPoint
    depart_min: float
    arrive_min: float
    origin_name: str | None = None
    destination_name: str | None = None
    origin_stop_id: str | None = None
    destination_stop_id: str | None = None
    distance_m: float | None = None
    stops: tuple[Stop, ...] = ()
    line: TransitLine | None = None
    trip_id: str | None = None

    @property
    def duration_min(self) -> float:
        return max(0.0, self.arrive_min - self.depart_min)

    @property
    def stop_count(self) -> int:
        # Number of hops ridden; stops includes the boarding stop.
        return max(0, len(self.stops) - 1)


@dataclass(frozen=True, slots=True)
class JourneyOption:
    """One itinerary candidate produced by a routing round."""

    legs: tuple[JourneyLeg, ...]
    query_departure_min: float
    round: int = 0
    score: float = 0.0

    @property
    def departure_min(self) -> float:
        if not self.legs:
            return self.query_departure_min
        return self.legs[0].depart_min

    @property
    def arrival_min(self) -> float:
        if not self.legs:
            return self.query_departure_min
        return self.legs[-1].arrive_min

    @property
    def total_duration_min(self) -> float:
        # Measured from the requested departure, so initial waiting counts.
        return max(0.0, self.arrival_min - self.query_departure_min)

    @property
    def walking_min(self) -> float:
        return float(
            sum(leg.duration_min for leg in self.legs if leg.mode is TravelMode.WALK)
        )

    @property
    def walking_m(self) -> float:
        return float(
            sum(
                leg.distance_m or 0.0
                for leg in self.legs
                if leg.mode is TravelMode.WALK
            )
        )

    @property
    def bus_min(self) -> float:
        return float(
            sum(leg.duration_min for leg in self.legs if leg.mode is TravelMode.BUS)
        )

    @property
    def bus_leg_count(self) -> int:
        return sum(1 for leg in self.legs if leg.mode is TravelMode.BUS)

    @property
    def transfer_count(self) -> int:
        return max(0, self.bus_leg_count - 1)


@dataclass(frozen=True, slots=True)
class PlanResult:
    options: tuple[JourneyOption, ...] = field(default_factory=tuple)
    message: str | None = None

    @property
    def no_route_found(self) -> bool:
        return not self.options
