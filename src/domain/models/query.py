from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from .geo import GeoPoint


class Preference(str, Enum):
    FASTEST = "fastest"
    LEAST_WALKING = "least_walking"
    FEWEST_TRANSFERS = "fewest_transfers"
    BALANCED = "balanced"


@dataclass(frozen=True, slots=True)
class JourneyQuery:
    origin: GeoPoint
    destination: GeoPoint
    departure_min: float
    max_transfers: int = 2
    max_walk_m: float = 1000.0
    preference: Preference = Preference.BALANCED
    include_night_buses: bool = True
    # When set, trips whose service is inactive on this date are skipped.
    service_date: date | None = None

    def __post_init__(self) -> None:
        if self.departure_min < 0:
            raise ValueError(f"Invalid departure time: {self.departure_min}")
        if self.max_transfers < 0:
            raise ValueError(f"Invalid max_transfers: {self.max_transfers}")
        if self.max_walk_m <= 0:
            raise ValueError(f"Invalid max_walk_m: {self.max_walk_m}")
