from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from src.app.ports.output import IGtfsRepository
from src.domain.exceptions import FeedError
from src.domain.models.gtfs import GtfsFeed

from .gtfs_csv import DirectoryTables, GtfsTables, ZipTables, parse_feed

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LocalGtfsRepository(IGtfsRepository):
    """Loads GTFS feeds from the local filesystem.

    Env vars:
      - GTFS_PATH: feeds directory (default data/gtfs)

    Layout:
      - <GTFS_PATH>/stops.txt ...: a single operator named after the directory
      - <GTFS_PATH>/<operator>/stops.txt ...: one operator per sub-directory
      - <GTFS_PATH>/<operator>.zip: one operator per archive
    """

    base_path: str | Path | None = None

    def _base(self) -> Path:
        value = self.base_path or os.getenv("GTFS_PATH") or "data/gtfs"
        return Path(value)

    def _single_feed(self, base: Path) -> bool:
        return (base / "stops.txt").is_file()

    def list_operators(self) -> list[str]:
        base = self._base()
        if not base.is_dir():
            raise FileNotFoundError(f"GTFS directory not found: {base}")

        if self._single_feed(base):
            return [base.resolve().name]

        operators: set[str] = set()
        for child in base.iterdir():
            if child.is_dir() and (child / "stops.txt").is_file():
                operators.add(child.name)
            elif child.is_file() and child.suffix.lower() == ".zip":
                operators.add(child.stem)
        return sorted(operators)

    def _tables(self, operator_id: str) -> GtfsTables:
        base = self._base()
        if self._single_feed(base) and operator_id == base.resolve().name:
            return DirectoryTables(base)
        if (base / operator_id / "stops.txt").is_file():
            return DirectoryTables(base / operator_id)
        archive = base / f"{operator_id}.zip"
        if archive.is_file():
            return ZipTables(archive)
        raise FeedError(f"Unknown GTFS operator {operator_id!r} under {base}")

    def load_feed(self, operator_id: str) -> GtfsFeed:
        logger.info("Loading GTFS feed %s from %s", operator_id, self._base())
        with self._tables(operator_id) as tables:
            return parse_feed(operator_id, tables)
