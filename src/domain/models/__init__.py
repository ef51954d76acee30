from .geo import BoundingBox, GeoPoint
from .journey import JourneyLeg, JourneyOption, PlanResult, TransitLine, TravelMode
from .query import JourneyQuery, Preference
from .stop import Stop

__all__ = [
    "BoundingBox",
    "GeoPoint",
    "JourneyLeg",
    "JourneyOption",
    "JourneyQuery",
    "PlanResult",
    "Preference",
    "Stop",
    "TransitLine",
    "TravelMode",
]
