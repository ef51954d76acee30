from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GeoPointSchema(CamelModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lon: float = Field(..., ge=-180.0, le=180.0)


class TransitLineSchema(CamelModel):
    route_id: str
    short_name: str | None = None
    long_name: str | None = None
    color: str | None = None
    text_color: str | None = None


class StopSchema(CamelModel):
    id: str
    name: str
    lat: float
    lon: float


class JourneyLegSchema(CamelModel):
    mode: Literal["walk", "bus"]
    origin: GeoPointSchema
    destination: GeoPointSchema
    origin_name: str | None = None
    destination_name: str | None = None
    origin_stop_id: str | None = None
    destination_stop_id: str | None = None
    departure_time: str
    arrival_time: str
    duration_minutes: float
    distance_m: float | None = None
    line: TransitLineSchema | None = None
    trip_id: str | None = None
    stop_count: int = 0
    stops: list[StopSchema] = []


class JourneyOptionSchema(CamelModel):
    legs: list[JourneyLegSchema]
    departure_time: str
    arrival_time: str
    total_duration_minutes: float
    walking_minutes: float
    walking_distance_m: float
    bus_minutes: float
    transfer_count: int
    round: int
    score: float


class PlanResponseSchema(CamelModel):
    data: list[JourneyOptionSchema]
    timestamp: int
    count: int
    message: str | None = None


class DatasetStatusSchema(CamelModel):
    loaded: bool
    operators: list[str] = []
    stop_count: int = 0
    trip_count: int = 0
    stop_time_count: int = 0
    pattern_count: int = 0
    loaded_at: datetime | None = None
    age_s: float | None = None
    stale: bool = False
    refreshing: bool = False


class ErrorSchema(BaseModel):
    error: str
