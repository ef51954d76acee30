from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Union

import numpy as np

from src.domain.models.dataset import Dataset, TripPattern
from src.domain.models.journey import JourneyLeg, JourneyOption, TransitLine, TravelMode
from src.domain.models.query import JourneyQuery
from src.domain.models.stop import Stop

from .geo_utils import (
    DEFAULT_WALK_SPEED_M_PER_MIN,
    haversine_distance_m,
    walking_minutes,
)
from .scoring import rank_journeys

logger = logging.getLogger(__name__)

INF = math.inf


@dataclass(frozen=True, slots=True)
class RaptorSettings:
    """Router tuning knobs.

    The night-bus rule is a policy filter, not GTFS semantics: when a query
    excludes night buses, patterns whose route short name starts with
    night_route_prefix are skipped, as are trips leaving the boarding stop
    after night_cutoff_min.
    """

    walk_speed_m_per_min: float = DEFAULT_WALK_SPEED_M_PER_MIN
    transfer_radius_m: float = 500.0
    min_transfer_min: float = 2.0
    min_walk_leg_m: float = 50.0
    night_route_prefix: str = "N"
    night_cutoff_min: float = 21 * 60.0


class HopKind(str, Enum):
    TRIP = "trip"
    WALK = "walk"


@dataclass(frozen=True, slots=True)
class TripHop:
    """Reached a stop by riding one trip of a pattern."""

    kind: ClassVar[HopKind] = HopKind.TRIP

    pattern_id: int
    trip_row: int
    board_pos: int
    alight_pos: int


@dataclass(frozen=True, slots=True)
class WalkHop:
    """Reached a stop by a footpath from another stop in the same round."""

    kind: ClassVar[HopKind] = HopKind.WALK

    from_stop: int
    distance_m: float
    depart_min: float
    arrive_min: float


Hop = Union[TripHop, WalkHop]


@dataclass(slots=True)
class _RoundState:
    """Per-call search state; never shared between calls."""

    arrivals: np.ndarray  # (rounds + 1, n_stops)
    best: np.ndarray  # (n_stops,)
    parents: list[dict[int, Hop]]
    access_m: dict[int, float]


class RaptorRouter:
    """Round-based transit router over a read-only Dataset.

    Round k holds the earliest arrivals using exactly k boardings; the search
    runs k = 1..max_transfers + 1 and yields at most one candidate per round.
    """

    def __init__(self, dataset: Dataset, settings: RaptorSettings | None = None):
        self.dataset = dataset
        self.settings = settings or RaptorSettings()

    def find_routes(self, query: JourneyQuery) -> list[JourneyOption]:
        ds = self.dataset
        if ds.stop_count == 0:
            return []

        access_idx, access_dist = ds.stops_within(query.origin, query.max_walk_m)
        egress_idx, egress_dist = ds.stops_within(query.destination, query.max_walk_m)
        if access_idx.size == 0 or egress_idx.size == 0:
            logger.debug(
                "No stops within %.0f m of origin (%d) or destination (%d)",
                query.max_walk_m,
                access_idx.size,
                egress_idx.size,
            )
            return []

        rounds = query.max_transfers + 1
        state = _RoundState(
            arrivals=np.full((rounds + 1, ds.stop_count), INF, dtype=np.float64),
            best=np.full(ds.stop_count, INF, dtype=np.float64),
            parents=[{} for _ in range(rounds + 1)],
            access_m={},
        )

        speed = self.settings.walk_speed_m_per_min
        for stop_idx, dist in zip(access_idx.tolist(), access_dist.tolist()):
            t = query.departure_min + walking_minutes(dist, speed)
            state.arrivals[0, stop_idx] = t
            state.best[stop_idx] = t
            state.access_m[stop_idx] = dist

        active = ds.active_trip_mask(query.service_date)
        egress_min = egress_dist / speed

        marked = set(state.access_m)
        candidates: list[JourneyOption] = []

        for k in range(1, rounds + 1):
            by_trip, scanned = self._scan_patterns(k, marked, state, query, active)
            by_walk = self._expand_footpaths(k, by_trip, state)
            marked = by_trip | by_walk

            logger.debug(
                "Round %d: %d patterns scanned, %d stops improved by trip, %d by footpath",
                k,
                scanned,
                len(by_trip),
                len(by_walk),
            )

            reach = state.arrivals[k, egress_idx] + egress_min
            if np.isfinite(reach).any():
                j = int(np.argmin(reach))
                candidates.append(
                    self._reconstruct(
                        k,
                        int(egress_idx[j]),
                        float(egress_dist[j]),
                        state,
                        query,
                    )
                )

            if not marked:
                break

        return rank_journeys(candidates, query.preference)

    # Round expansion

    def _pattern_excluded(self, pattern: TripPattern, query: JourneyQuery) -> bool:
        if query.include_night_buses:
            return False
        route = self.dataset.routes_by_id.get(pattern.route_id)
        short_name = (route.short_name if route else None) or ""
        prefix = self.settings.night_route_prefix
        return bool(prefix) and short_name.startswith(prefix)

    def _earliest_trip(
        self,
        pattern: TripPattern,
        pos: int,
        ready_min: float,
        active: np.ndarray | None,
        query: JourneyQuery,
    ) -> int:
        """Row of the earliest boardable trip at pos, or -1."""

        deps = pattern.departures[:, pos]
        ok = deps >= ready_min
        if active is not None:
            ok &= active[pattern.trip_indices]
        if not query.include_night_buses:
            ok &= deps <= self.settings.night_cutoff_min
        rows = np.flatnonzero(ok)
        if rows.size == 0:
            return -1
        return int(rows[np.argmin(deps[rows])])

    def _scan_patterns(
        self,
        k: int,
        marked: set[int],
        state: _RoundState,
        query: JourneyQuery,
        active: np.ndarray | None,
    ) -> tuple[set[int], int]:
        ds = self.dataset
        buffer = self.settings.min_transfer_min

        # pattern -> earliest marked position
        queue: dict[int, int] = {}
        for stop_idx in marked:
            for pattern_id, pos in ds.patterns_by_stop.get(stop_idx, ()):
                if pos < queue.get(pattern_id, ds.stop_count):
                    queue[pattern_id] = pos

        prev = state.arrivals[k - 1]
        cur = state.arrivals[k]
        best = state.best
        parents = state.parents[k]
        improved: set[int] = set()
        scanned = 0

        for pattern_id in sorted(queue):
            pattern = ds.patterns[pattern_id]
            if self._pattern_excluded(pattern, query):
                continue
            scanned += 1

            row = -1
            board_pos = -1
            for pos in range(queue[pattern_id], pattern.stop_count):
                stop_idx = int(pattern.stops[pos])

                if row >= 0:
                    arr = float(pattern.arrivals[row, pos])
                    if arr < best[stop_idx]:
                        cur[stop_idx] = arr
                        best[stop_idx] = arr
                        parents[stop_idx] = TripHop(
                            pattern_id=pattern_id,
                            trip_row=row,
                            board_pos=board_pos,
                            alight_pos=pos,
                        )
                        improved.add(stop_idx)

                ready = prev[stop_idx]
                if ready == INF:
                    continue
                ready += buffer
                if row >= 0 and ready > pattern.departures[row, pos]:
                    continue
                candidate = self._earliest_trip(pattern, pos, ready, active, query)
                if candidate >= 0 and (
                    row < 0
                    or pattern.departures[candidate, pos] < pattern.departures[row, pos]
                ):
                    row = candidate
                    board_pos = pos

        return improved, scanned

    def _expand_footpaths(
        self, k: int, sources: set[int], state: _RoundState
    ) -> set[int]:
        ds = self.dataset
        cur = state.arrivals[k]
        best = state.best
        parents = state.parents[k]
        speed = self.settings.walk_speed_m_per_min

        # Walks start from trip arrivals only and never land on another source.
        departures = {s: float(cur[s]) for s in sources}
        reached: set[int] = set()

        for src in sorted(sources):
            depart = departures[src]
            near_idx, near_dist = ds.stops_within(
                ds.stops[src].location, self.settings.transfer_radius_m
            )
            for dst, dist in zip(near_idx.tolist(), near_dist.tolist()):
                if dst in departures:
                    continue
                arrive = depart + walking_minutes(dist, speed)
                if arrive < best[dst]:
                    cur[dst] = arrive
                    best[dst] = arrive
                    parents[dst] = WalkHop(
                        from_stop=src,
                        distance_m=dist,
                        depart_min=depart,
                        arrive_min=arrive,
                    )
                    reached.add(dst)

        return reached

    # Reconstruction

    def _reconstruct(
        self,
        k: int,
        terminus: int,
        egress_m: float,
        state: _RoundState,
        query: JourneyQuery,
    ) -> JourneyOption:
        ds = self.dataset
        speed = self.settings.walk_speed_m_per_min
        min_leg = self.settings.min_walk_leg_m

        legs: list[JourneyLeg] = []
        arrive_terminus = float(state.arrivals[k, terminus])
        if egress_m > min_leg:
            legs.append(
                JourneyLeg(
                    mode=TravelMode.WALK,
                    origin=ds.stops[terminus].location,
                    destination=query.destination,
                    depart_min=arrive_terminus,
                    arrive_min=arrive_terminus + walking_minutes(egress_m, speed),
                    origin_name=ds.stops[terminus].name,
                    origin_stop_id=ds.stops[terminus].id,
                    distance_m=egress_m,
                )
            )

        stop_idx = terminus
        r = k
        while r > 0:
            hop = state.parents[r].get(stop_idx)
            if hop is None:
                raise RuntimeError(
                    f"Broken parent chain at stop {ds.stops[stop_idx].id} round {r}"
                )
            if hop.kind is HopKind.WALK:
                legs.append(self._walk_leg(hop, stop_idx))
                stop_idx = hop.from_stop
            else:
                leg, stop_idx = self._trip_leg(hop)
                legs.append(leg)
                r -= 1

        access_m = state.access_m[stop_idx]
        if access_m > min_leg:
            first = ds.stops[stop_idx]
            legs.append(
                JourneyLeg(
                    mode=TravelMode.WALK,
                    origin=query.origin,
                    destination=first.location,
                    depart_min=query.departure_min,
                    arrive_min=query.departure_min + walking_minutes(access_m, speed),
                    destination_name=first.name,
                    destination_stop_id=first.id,
                    distance_m=access_m,
                )
            )

        legs.reverse()
        return JourneyOption(
            legs=tuple(legs), query_departure_min=query.departure_min, round=k
        )

    def _walk_leg(self, hop: WalkHop, to_stop: int) -> JourneyLeg:
        a: Stop = self.dataset.stops[hop.from_stop]
        b: Stop = self.dataset.stops[to_stop]
        return JourneyLeg(
            mode=TravelMode.WALK,
            origin=a.location,
            destination=b.location,
            depart_min=hop.depart_min,
            arrive_min=hop.arrive_min,
            origin_name=a.name,
            destination_name=b.name,
            origin_stop_id=a.id,
            destination_stop_id=b.id,
            distance_m=hop.distance_m,
        )

    def _trip_leg(self, hop: TripHop) -> tuple[JourneyLeg, int]:
        ds = self.dataset
        pattern = ds.patterns[hop.pattern_id]
        ridden = tuple(
            ds.stops[int(s)] for s in pattern.stops[hop.board_pos : hop.alight_pos + 1]
        )
        distance = sum(
            haversine_distance_m(x.location, y.location)
            for x, y in zip(ridden, ridden[1:])
        )
        route = ds.routes_by_id.get(pattern.route_id)
        line = TransitLine(
            route_id=pattern.route_id,
            short_name=route.short_name if route else None,
            long_name=route.long_name if route else None,
            color=route.color if route else None,
            text_color=route.text_color if route else None,
        )
        trip = ds.trips[int(pattern.trip_indices[hop.trip_row])]
        board, alight = ridden[0], ridden[-1]
        leg = JourneyLeg(
            mode=TravelMode.BUS,
            origin=board.location,
            destination=alight.location,
            depart_min=float(pattern.departures[hop.trip_row, hop.board_pos]),
            arrive_min=float(pattern.arrivals[hop.trip_row, hop.alight_pos]),
            origin_name=board.name,
            destination_name=alight.name,
            origin_stop_id=board.id,
            destination_stop_id=alight.id,
            distance_m=float(distance),
            stops=ridden,
            line=line,
            trip_id=trip.trip_id,
        )
        return leg, int(pattern.stops[hop.board_pos])
