from __future__ import annotations

import os
from functools import lru_cache

from src.adapters.config import PlannerConfig
from src.adapters.persistence import (
    HttpGtfsRepository,
    LocalGtfsRepository,
    S3GtfsRepository,
)
from src.app.ports.output import IGtfsRepository
from src.app.services.routing_service import RoutingService


def get_gtfs_repository() -> IGtfsRepository:
    if os.getenv("GTFS_FEED_URLS"):
        return HttpGtfsRepository()
    if os.getenv("GTFS_BUCKET"):
        return S3GtfsRepository()
    return LocalGtfsRepository()


@lru_cache(maxsize=1)
def get_routing_service() -> RoutingService:
    # One service per process so the Dataset cache is shared across requests.
    config = PlannerConfig.from_env()
    return RoutingService(
        gtfs_repository=get_gtfs_repository(),
        settings=config.raptor,
        ttl_s=config.dataset_ttl_s,
    )
