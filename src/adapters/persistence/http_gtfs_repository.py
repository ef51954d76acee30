from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable, Mapping

import httpx

from src.app.ports.output import IGtfsRepository
from src.domain.exceptions import FeedError, FeedFetchError
from src.domain.models.gtfs import GtfsFeed

from .gtfs_csv import ZipTables, parse_feed, validate_zip_bytes

logger = logging.getLogger(__name__)


def parse_feed_urls(raw: str | None) -> dict[str, str]:
    """Parse 'op=url;op2=url2' into an ordered mapping."""

    out: dict[str, str] = {}
    for part in (raw or "").split(";"):
        part = part.strip()
        if not part or "=" not in part:
            continue
        operator_id, url = part.split("=", 1)
        operator_id = operator_id.strip()
        url = url.strip()
        if operator_id and url:
            out[operator_id] = url
    return out


@dataclass(slots=True)
class HttpGtfsRepository(IGtfsRepository):
    """Downloads each operator's GTFS ZIP over HTTP.

    Env vars:
      - GTFS_FEED_URLS: 'operator=url;operator2=url2'
      - GTFS_FETCH_TIMEOUT_S: request timeout (default 120)
      - GTFS_FETCH_RETRIES: attempts per download (default 3)

    Notes:
      - Transport errors and HTTP error statuses are retried with exponential
        backoff; content that is not a ZIP archive fails immediately.
    """

    feed_urls: Mapping[str, str] | None = None
    timeout_s: float = 120.0
    max_retries: int = 3
    backoff_base_s: float = 2.0

    transport: httpx.BaseTransport | None = field(default=None, repr=False)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.feed_urls is None:
            self.feed_urls = parse_feed_urls(os.getenv("GTFS_FEED_URLS"))
        if os.getenv("GTFS_FETCH_TIMEOUT_S"):
            self.timeout_s = float(os.environ["GTFS_FETCH_TIMEOUT_S"])
        if os.getenv("GTFS_FETCH_RETRIES"):
            self.max_retries = max(1, int(os.environ["GTFS_FETCH_RETRIES"]))

    def list_operators(self) -> list[str]:
        return list(self.feed_urls or {})

    def fetch(self, operator_id: str) -> bytes:
        url = (self.feed_urls or {}).get(operator_id)
        if not url:
            raise FeedError(f"No feed URL configured for operator {operator_id!r}")

        last_error: Exception | None = None
        for attempt in range(self.max_retries):
            try:
                logger.info(
                    "Fetching GTFS feed %s from %s (attempt %d/%d)",
                    operator_id,
                    url,
                    attempt + 1,
                    self.max_retries,
                )
                with httpx.Client(
                    timeout=httpx.Timeout(self.timeout_s),
                    follow_redirects=True,
                    transport=self.transport,
                ) as client:
                    resp = client.get(url)
                    resp.raise_for_status()
                    data = resp.content

                validate_zip_bytes(data)
                logger.info(
                    "Downloaded GTFS feed %s (%d bytes)", operator_id, len(data)
                )
                return data

            except (httpx.HTTPStatusError, httpx.RequestError) as exc:
                last_error = exc
                if attempt < self.max_retries - 1:
                    delay = self.backoff_base_s * (2**attempt)
                    logger.warning(
                        "Fetching %s failed (%s), retrying in %.1fs",
                        operator_id,
                        exc,
                        delay,
                    )
                    self.sleep(delay)

        raise FeedFetchError(
            f"Failed to fetch GTFS feed {operator_id!r} after {self.max_retries} attempts"
        ) from last_error

    def load_feed(self, operator_id: str) -> GtfsFeed:
        data = self.fetch(operator_id)
        with ZipTables(data) as tables:
            return parse_feed(operator_id, tables)
