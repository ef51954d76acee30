class RoutingError(Exception):
    """Base exception for route calculation failures."""


class NoPathFound(RoutingError):
    """Raised when no feasible path exists for the given request."""


class InvalidQuery(RoutingError):
    """Raised when a journey request is missing or has malformed parameters."""


class DatasetUnavailable(RoutingError):
    """Raised when no operator feed could be loaded into a dataset."""
