from __future__ import annotations

import time
from datetime import date

from fastapi import APIRouter, Depends, Query

from src.adapters.api.dependencies import get_routing_service
from src.adapters.api.schemas.routes import (
    DatasetStatusSchema,
    ErrorSchema,
    GeoPointSchema,
    JourneyLegSchema,
    JourneyOptionSchema,
    PlanResponseSchema,
    StopSchema,
    TransitLineSchema,
)
from src.app.services.routing_service import DatasetStatus, RoutingService
from src.domain.algorithms.time_utils import format_minutes, parse_gtfs_time_min
from src.domain.exceptions import InvalidQuery
from src.domain.models import (
    GeoPoint,
    JourneyLeg,
    JourneyOption,
    JourneyQuery,
    Preference,
)

router = APIRouter(tags=["routes"])

ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"model": ErrorSchema, "description": "Malformed query"},
    500: {"model": ErrorSchema, "description": "Planner or dataset failure"},
}


def _point(p: GeoPoint) -> GeoPointSchema:
    return GeoPointSchema(lat=p.lat, lon=p.lon)


def _leg_to_schema(leg: JourneyLeg) -> JourneyLegSchema:
    return JourneyLegSchema(
        mode=leg.mode.value,
        origin=_point(leg.origin),
        destination=_point(leg.destination),
        origin_name=leg.origin_name,
        destination_name=leg.destination_name,
        origin_stop_id=leg.origin_stop_id,
        destination_stop_id=leg.destination_stop_id,
        departure_time=format_minutes(leg.depart_min),
        arrival_time=format_minutes(leg.arrive_min),
        duration_minutes=round(leg.duration_min, 2),
        distance_m=round(leg.distance_m, 1) if leg.distance_m is not None else None,
        line=(
            TransitLineSchema(
                route_id=leg.line.route_id,
                short_name=leg.line.short_name,
                long_name=leg.line.long_name,
                color=leg.line.color,
                text_color=leg.line.text_color,
            )
            if leg.line
            else None
        ),
        trip_id=leg.trip_id,
        stop_count=leg.stop_count,
        stops=[
            StopSchema(id=s.id, name=s.name, lat=s.location.lat, lon=s.location.lon)
            for s in leg.stops
        ],
    )


def _option_to_schema(option: JourneyOption) -> JourneyOptionSchema:
    return JourneyOptionSchema(
        legs=[_leg_to_schema(leg) for leg in option.legs],
        departure_time=format_minutes(option.departure_min),
        arrival_time=format_minutes(option.arrival_min),
        total_duration_minutes=round(option.total_duration_min, 2),
        walking_minutes=round(option.walking_min, 2),
        walking_distance_m=round(option.walking_m, 1),
        bus_minutes=round(option.bus_min, 2),
        transfer_count=option.transfer_count,
        round=option.round,
        score=round(option.score, 2),
    )


def _status_to_schema(status: DatasetStatus) -> DatasetStatusSchema:
    return DatasetStatusSchema(
        loaded=status.loaded,
        operators=list(status.operators),
        stop_count=status.stop_count,
        trip_count=status.trip_count,
        stop_time_count=status.stop_time_count,
        pattern_count=status.pattern_count,
        loaded_at=status.loaded_at,
        age_s=round(status.age_s, 1) if status.age_s is not None else None,
        stale=status.stale,
        refreshing=status.refreshing,
    )


@router.get(
    "/route-planner", response_model=PlanResponseSchema, responses=ERROR_RESPONSES
)
def plan_journey(
    origin_lat: float = Query(..., alias="originLat", ge=-90.0, le=90.0),
    origin_lon: float = Query(..., alias="originLon", ge=-180.0, le=180.0),
    dest_lat: float = Query(..., alias="destLat", ge=-90.0, le=90.0),
    dest_lon: float = Query(..., alias="destLon", ge=-180.0, le=180.0),
    departure_time: str = Query("08:00:00", alias="departureTime"),
    departure_date: date | None = Query(None, alias="departureDate"),
    max_transfers: int = Query(2, alias="maxTransfers", ge=0, le=5),
    walk_distance: float = Query(1000.0, alias="walkDistance", gt=0.0, le=5000.0),
    preference: Preference = Query(Preference.BALANCED),
    include_night_buses: bool = Query(True, alias="includeNightBuses"),
    service: RoutingService = Depends(get_routing_service),
) -> PlanResponseSchema:
    try:
        departure_min = parse_gtfs_time_min(departure_time)
    except ValueError as exc:
        raise InvalidQuery(f"departureTime: {exc}") from exc

    query = JourneyQuery(
        origin=GeoPoint(lat=origin_lat, lon=origin_lon),
        destination=GeoPoint(lat=dest_lat, lon=dest_lon),
        departure_min=departure_min,
        max_transfers=max_transfers,
        max_walk_m=walk_distance,
        preference=preference,
        include_night_buses=include_night_buses,
        service_date=departure_date,
    )
    result = service.plan(query)

    data = [_option_to_schema(o) for o in result.options]
    return PlanResponseSchema(
        data=data,
        timestamp=int(time.time() * 1000),
        count=len(data),
        message=result.message,
    )


@router.get(
    "/dataset/status", response_model=DatasetStatusSchema, responses=ERROR_RESPONSES
)
def dataset_status(
    service: RoutingService = Depends(get_routing_service),
) -> DatasetStatusSchema:
    return _status_to_schema(service.status())


@router.post(
    "/dataset/refresh", response_model=DatasetStatusSchema, responses=ERROR_RESPONSES
)
def refresh_dataset(
    service: RoutingService = Depends(get_routing_service),
) -> DatasetStatusSchema:
    service.refresh()
    return _status_to_schema(service.status())
