class FeedError(Exception):
    """Base exception for GTFS static feed ingestion failures."""


class MissingRequiredFileError(FeedError):
    """Raised when a required GTFS table is missing from a feed."""


class InvalidZipError(FeedError):
    """Raised when downloaded content is not a valid ZIP archive."""


class FeedFetchError(FeedError):
    """Raised when a remote feed cannot be fetched after all retries."""
