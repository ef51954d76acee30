from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from src.app.ports.output import IGtfsRepository
from src.domain.algorithms.indexing import build_dataset
from src.domain.algorithms.raptor import RaptorRouter, RaptorSettings
from src.domain.exceptions import DatasetUnavailable
from src.domain.models import JourneyQuery, PlanResult
from src.domain.models.dataset import Dataset
from src.domain.models.gtfs import GtfsFeed

logger = logging.getLogger(__name__)

NO_ROUTE_MESSAGE = "No route found between origin and destination at the requested time"


@dataclass(frozen=True, slots=True)
class DatasetStatus:
    loaded: bool
    operators: tuple[str, ...] = ()
    stop_count: int = 0
    trip_count: int = 0
    stop_time_count: int = 0
    pattern_count: int = 0
    loaded_at: datetime | None = None
    age_s: float | None = None
    stale: bool = False
    refreshing: bool = False


@dataclass(slots=True)
class RoutingService:
    """Application service owning the current Dataset and planning journeys.

    The Dataset reference is swapped whole on refresh; routers hold on to the
    instance they were given, so in-flight plans never see a half-built one.
    Only one load runs at a time: concurrent refresh callers share its result.
    """

    gtfs_repository: IGtfsRepository | None
    settings: RaptorSettings = field(default_factory=RaptorSettings)
    ttl_s: float = 3600.0
    # Minimum delay before a failed background refresh is retried.
    retry_after_s: float = 60.0
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    _dataset: Dataset | None = field(default=None, init=False, repr=False)
    _loaded_mono: float = field(default=0.0, init=False, repr=False)
    _failed_mono: float | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )
    _inflight: Future | None = field(default=None, init=False, repr=False)

    @classmethod
    def with_dataset(
        cls, dataset: Dataset, settings: RaptorSettings | None = None
    ) -> "RoutingService":
        """Service over a fixed Dataset (no repository, never stale)."""

        service = cls(gtfs_repository=None, settings=settings or RaptorSettings())
        service._install(dataset)
        return service

    # Dataset lifecycle

    def _install(self, dataset: Dataset) -> None:
        with self._lock:
            self._dataset = dataset
            self._loaded_mono = self.clock()
            self._failed_mono = None

    def _load(self) -> Dataset:
        repo = self.gtfs_repository
        if repo is None:
            raise DatasetUnavailable("No GTFS repository configured")

        try:
            operators = repo.list_operators()
        except Exception as exc:
            raise DatasetUnavailable(f"Could not list GTFS operators: {exc}") from exc

        feeds: list[GtfsFeed] = []
        for operator_id in operators:
            try:
                feeds.append(repo.load_feed(operator_id))
            except Exception:
                logger.exception("Failed to load GTFS feed for operator %s", operator_id)

        if not feeds:
            raise DatasetUnavailable(
                f"No GTFS data loaded (operators tried: {', '.join(operators) or 'none'})"
            )
        return build_dataset(feeds)

    def _claim(self) -> tuple[Future, bool]:
        """Join the in-flight load, or register a new one owned by the caller."""

        with self._lock:
            if self._inflight is not None:
                return self._inflight, False
            future: Future = Future()
            self._inflight = future
            return future, True

    def _run(self, future: Future) -> None:
        started = time.monotonic()
        try:
            dataset = self._load()
        except Exception as exc:
            logger.error("Dataset refresh failed: %s", exc)
            with self._lock:
                self._inflight = None
                self._failed_mono = self.clock()
            future.set_exception(exc)
            return

        with self._lock:
            self._dataset = dataset
            self._loaded_mono = self.clock()
            self._failed_mono = None
            self._inflight = None
        logger.info("Dataset refreshed in %.2fs", time.monotonic() - started)
        future.set_result(dataset)

    def refresh(self) -> Dataset:
        """Reload now and block until the (possibly shared) load finishes."""

        future, owner = self._claim()
        if owner:
            self._run(future)
        return future.result()

    def refresh_in_background(self) -> Future:
        future, owner = self._claim()
        if owner:
            threading.Thread(
                target=self._run, args=(future,), name="dataset-refresh", daemon=True
            ).start()
        return future

    def is_stale(self) -> bool:
        if self.gtfs_repository is None or self._dataset is None:
            return False
        return self.clock() - self._loaded_mono >= self.ttl_s

    def current_dataset(self) -> Dataset:
        """Return the Dataset, loading it on first use.

        A stale Dataset is still served; a refresh is scheduled in the
        background instead of making the caller wait.
        """

        dataset = self._dataset
        if dataset is None:
            return self.refresh()

        if self.is_stale():
            failed = self._failed_mono
            if failed is None or self.clock() - failed >= self.retry_after_s:
                self.refresh_in_background()
        return dataset

    def status(self) -> DatasetStatus:
        dataset = self._dataset
        refreshing = self._inflight is not None
        if dataset is None:
            return DatasetStatus(loaded=False, refreshing=refreshing)
        return DatasetStatus(
            loaded=True,
            operators=dataset.operators,
            stop_count=dataset.stop_count,
            trip_count=dataset.trip_count,
            stop_time_count=dataset.stop_time_count,
            pattern_count=len(dataset.patterns),
            loaded_at=dataset.loaded_at,
            age_s=max(0.0, self.clock() - self._loaded_mono),
            stale=self.is_stale(),
            refreshing=refreshing,
        )

    # Planning

    def plan(self, query: JourneyQuery) -> PlanResult:
        dataset = self.current_dataset()
        options = RaptorRouter(dataset, self.settings).find_routes(query)
        if not options:
            return PlanResult(options=(), message=NO_ROUTE_MESSAGE)
        return PlanResult(options=tuple(options))
