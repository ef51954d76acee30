from __future__ import annotations

import pytest

from src.adapters.api.dependencies import get_gtfs_repository
from src.adapters.aws import AwsRuntimeConfig
from src.adapters.config import PlannerConfig
from src.adapters.persistence import (
    HttpGtfsRepository,
    LocalGtfsRepository,
    S3GtfsRepository,
)

_PLANNER_VARS = (
    "DATASET_TTL_S",
    "WALK_SPEED_M_PER_MIN",
    "TRANSFER_RADIUS_M",
    "MIN_TRANSFER_MIN",
    "NIGHT_ROUTE_PREFIX",
    "NIGHT_CUTOFF",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _PLANNER_VARS + ("GTFS_FEED_URLS", "GTFS_BUCKET", "ENDPOINT_URL"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.mark.unit
def test_planner_config_defaults(clean_env) -> None:
    cfg = PlannerConfig.from_env()

    assert cfg.dataset_ttl_s == 3600.0
    assert cfg.raptor.walk_speed_m_per_min == pytest.approx(83.33)
    assert cfg.raptor.transfer_radius_m == 500.0
    assert cfg.raptor.min_transfer_min == 2.0
    assert cfg.raptor.night_route_prefix == "N"
    assert cfg.raptor.night_cutoff_min == 1260.0


@pytest.mark.unit
def test_planner_config_reads_env(clean_env) -> None:
    clean_env.setenv("DATASET_TTL_S", "120")
    clean_env.setenv("WALK_SPEED_M_PER_MIN", "70")
    clean_env.setenv("TRANSFER_RADIUS_M", "250")
    clean_env.setenv("MIN_TRANSFER_MIN", "3")
    clean_env.setenv("NIGHT_ROUTE_PREFIX", "L")
    clean_env.setenv("NIGHT_CUTOFF", "22:30")

    cfg = PlannerConfig.from_env()

    assert cfg.dataset_ttl_s == 120.0
    assert cfg.raptor.walk_speed_m_per_min == 70.0
    assert cfg.raptor.transfer_radius_m == 250.0
    assert cfg.raptor.min_transfer_min == 3.0
    assert cfg.raptor.night_route_prefix == "L"
    assert cfg.raptor.night_cutoff_min == 1350.0


@pytest.mark.unit
def test_repository_selection_follows_env(clean_env) -> None:
    assert isinstance(get_gtfs_repository(), LocalGtfsRepository)

    clean_env.setenv("GTFS_BUCKET", "feeds")
    assert isinstance(get_gtfs_repository(), S3GtfsRepository)

    clean_env.setenv("GTFS_FEED_URLS", "bus=https://feeds.test/bus.zip")
    assert isinstance(get_gtfs_repository(), HttpGtfsRepository)


@pytest.mark.unit
def test_aws_endpoint_resolution(clean_env) -> None:
    clean_env.delenv("USE_LOCALSTACK", raising=False)
    assert AwsRuntimeConfig.from_env().resolved_endpoint_url() is None

    clean_env.setenv("USE_LOCALSTACK", "true")
    clean_env.delenv("LOCALSTACK_ENDPOINT_URL", raising=False)
    assert AwsRuntimeConfig.from_env().resolved_endpoint_url() == "http://localhost:4566"

    clean_env.setenv("ENDPOINT_URL", " http://aws.local:4566 ")
    assert AwsRuntimeConfig.from_env().resolved_endpoint_url() == "http://aws.local:4566"
