from __future__ import annotations

import pytest

from src.domain.algorithms.scoring import rank_journeys, score_journey
from src.domain.models import GeoPoint, JourneyLeg, JourneyOption, Preference, TravelMode

P = GeoPoint(lat=0.0, lon=0.0)


def _option(*legs: tuple[TravelMode, float, float], round: int = 1) -> JourneyOption:
    return JourneyOption(
        legs=tuple(
            JourneyLeg(mode=m, origin=P, destination=P, depart_min=d, arrive_min=a)
            for m, d, a in legs
        ),
        query_departure_min=480.0,
        round=round,
    )


# 4 min walking, 1 transfer, arrives 40 min after the query departure.
TRANSFER = _option(
    (TravelMode.WALK, 480.0, 484.0),
    (TravelMode.BUS, 485.0, 500.0),
    (TravelMode.BUS, 505.0, 520.0),
    round=2,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("preference", "expected"),
    [
        (Preference.FASTEST, 40.0),
        (Preference.LEAST_WALKING, 40.0 + 4 * 10),
        (Preference.FEWEST_TRANSFERS, 40.0 + 30),
        (Preference.BALANCED, 40.0 + 5 + 4 * 2),
    ],
)
def test_score_per_preference(preference: Preference, expected: float) -> None:
    assert score_journey(TRANSFER, preference) == pytest.approx(expected)


@pytest.mark.unit
def test_rank_sorts_ascending_and_attaches_scores() -> None:
    direct = _option((TravelMode.BUS, 510.0, 550.0))

    ranked = rank_journeys([direct, TRANSFER], Preference.FASTEST)

    assert [o.round for o in ranked] == [2, 1]
    assert [o.score for o in ranked] == [40.0, 70.0]


@pytest.mark.unit
def test_rank_is_stable_on_equal_scores() -> None:
    first = _option((TravelMode.BUS, 490.0, 500.0), round=1)
    second = _option((TravelMode.BUS, 495.0, 500.0), round=2)

    ranked = rank_journeys([first, second], Preference.FASTEST)

    assert [o.round for o in ranked] == [1, 2]


@pytest.mark.unit
def test_rank_accepts_preference_values() -> None:
    ranked = rank_journeys([TRANSFER], "least_walking")  # type: ignore[arg-type]
    assert ranked[0].score == pytest.approx(80.0)
