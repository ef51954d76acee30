from __future__ import annotations

import math


def parse_gtfs_time_min(raw: str) -> float:
    """Parse a GTFS clock value into minutes since service-day midnight.

    Accepts HH:MM or HH:MM:SS; HH may exceed 24 (e.g. 25:10:00 for trips
    running past midnight).
    """

    parts = raw.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid GTFS time: {raw!r}")
    try:
        hh = int(parts[0])
        mm = int(parts[1])
        ss = int(parts[2]) if len(parts) == 3 else 0
    except ValueError:
        raise ValueError(f"Invalid GTFS time: {raw!r}") from None
    if hh < 0 or not (0 <= mm < 60) or not (0 <= ss < 60):
        raise ValueError(f"Invalid GTFS time: {raw!r}")
    return hh * 60 + mm + ss / 60.0


def format_minutes(minutes: float) -> str:
    """Format minutes since midnight as HH:MM:SS (hours are not wrapped)."""

    if math.isinf(minutes) or math.isnan(minutes):
        raise ValueError(f"Cannot format time: {minutes}")
    total_s = max(0, int(round(minutes * 60.0)))
    hh, rem = divmod(total_s, 3600)
    mm, ss = divmod(rem, 60)
    return f"{hh:02d}:{mm:02d}:{ss:02d}"
