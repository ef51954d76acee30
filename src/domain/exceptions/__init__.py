from .feeds import FeedError, FeedFetchError, InvalidZipError, MissingRequiredFileError
from .routing import DatasetUnavailable, InvalidQuery, NoPathFound, RoutingError

__all__ = [
    "DatasetUnavailable",
    "FeedError",
    "FeedFetchError",
    "InvalidQuery",
    "InvalidZipError",
    "MissingRequiredFileError",
    "NoPathFound",
    "RoutingError",
]
