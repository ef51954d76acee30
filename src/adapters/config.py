from __future__ import annotations

import os
from dataclasses import dataclass

from src.domain.algorithms.raptor import RaptorSettings
from src.domain.algorithms.time_utils import parse_gtfs_time_min


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    return float(raw) if raw else default


@dataclass(frozen=True, slots=True)
class PlannerConfig:
    """Runtime configuration for the planner, read from the environment."""

    dataset_ttl_s: float
    raptor: RaptorSettings

    @staticmethod
    def from_env() -> "PlannerConfig":
        defaults = RaptorSettings()
        cutoff_raw = (os.getenv("NIGHT_CUTOFF") or "").strip()
        prefix = os.getenv("NIGHT_ROUTE_PREFIX")

        return PlannerConfig(
            dataset_ttl_s=_env_float("DATASET_TTL_S", 3600.0),
            raptor=RaptorSettings(
                walk_speed_m_per_min=_env_float(
                    "WALK_SPEED_M_PER_MIN", defaults.walk_speed_m_per_min
                ),
                transfer_radius_m=_env_float(
                    "TRANSFER_RADIUS_M", defaults.transfer_radius_m
                ),
                min_transfer_min=_env_float(
                    "MIN_TRANSFER_MIN", defaults.min_transfer_min
                ),
                min_walk_leg_m=defaults.min_walk_leg_m,
                night_route_prefix=(
                    prefix.strip() if prefix is not None else defaults.night_route_prefix
                ),
                night_cutoff_min=(
                    parse_gtfs_time_min(cutoff_raw)
                    if cutoff_raw
                    else defaults.night_cutoff_min
                ),
            ),
        )
