from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from src.domain.models.journey import JourneyOption
from src.domain.models.query import Preference

# (per-transfer, per-walking-minute) penalties added to the total duration.
PENALTIES: dict[Preference, tuple[float, float]] = {
    Preference.FASTEST: (0.0, 0.0),
    Preference.LEAST_WALKING: (0.0, 10.0),
    Preference.FEWEST_TRANSFERS: (30.0, 0.0),
    Preference.BALANCED: (5.0, 2.0),
}


def score_journey(option: JourneyOption, preference: Preference) -> float:
    """Linear score in minutes; lower is better."""

    per_transfer, per_walk_min = PENALTIES[Preference(preference)]
    return (
        option.total_duration_min
        + option.transfer_count * per_transfer
        + option.walking_min * per_walk_min
    )


def rank_journeys(
    options: Iterable[JourneyOption], preference: Preference
) -> list[JourneyOption]:
    """Attach scores and sort ascending; equal scores keep their input order."""

    scored = [replace(o, score=score_journey(o, preference)) for o in options]
    return sorted(scored, key=lambda o: o.score)
