from __future__ import annotations

from abc import ABC, abstractmethod

from src.domain.models.gtfs import GtfsFeed


class IGtfsRepository(ABC):
    """Port for loading per-operator GTFS static feeds."""

    @abstractmethod
    def list_operators(self) -> list[str]:
        raise NotImplementedError

    @abstractmethod
    def load_feed(self, operator_id: str) -> GtfsFeed:
        raise NotImplementedError
