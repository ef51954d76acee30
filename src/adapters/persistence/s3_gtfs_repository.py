from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any

from src.adapters.aws import s3_client
from src.app.ports.output import IGtfsRepository
from src.domain.models.gtfs import GtfsFeed

from .gtfs_csv import ZipTables, parse_feed, validate_zip_bytes

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class S3GtfsRepository(IGtfsRepository):
    """GTFS feeds stored as ZIP objects in S3, one object per operator.

    Env vars:
      - GTFS_BUCKET: bucket name
      - GTFS_PREFIX: key prefix (default: gtfs); objects are <prefix>/<operator>.zip
      - ENDPOINT_URL / USE_LOCALSTACK / AWS_REGION: see src.adapters.aws
    """

    bucket: str | None = None
    prefix: str | None = None
    client: Any | None = field(default=None, repr=False)

    def _bucket(self) -> str:
        value = self.bucket or os.getenv("GTFS_BUCKET")
        if not value:
            raise RuntimeError("Missing GTFS_BUCKET")
        return value

    def _prefix(self) -> str:
        value = self.prefix
        if value is None:
            value = os.getenv("GTFS_PREFIX", "gtfs")
        return value.strip("/")

    def _client(self) -> Any:
        if self.client is None:
            self.client = s3_client()
        return self.client

    def _key(self, operator_id: str) -> str:
        prefix = self._prefix()
        return f"{prefix}/{operator_id}.zip" if prefix else f"{operator_id}.zip"

    def list_operators(self) -> list[str]:
        s3 = self._client()
        prefix = self._prefix()
        list_prefix = f"{prefix}/" if prefix else ""

        operators: list[str] = []
        kwargs: dict[str, Any] = {"Bucket": self._bucket(), "Prefix": list_prefix}
        while True:
            page = s3.list_objects_v2(**kwargs)
            for obj in page.get("Contents", []):
                name = obj["Key"][len(list_prefix) :]
                # Only direct children of the prefix.
                if "/" in name or not name.lower().endswith(".zip"):
                    continue
                operators.append(name[: -len(".zip")])
            if not page.get("IsTruncated"):
                break
            kwargs["ContinuationToken"] = page["NextContinuationToken"]
        return sorted(operators)

    def load_feed(self, operator_id: str) -> GtfsFeed:
        bucket = self._bucket()
        key = self._key(operator_id)
        logger.info("Loading GTFS feed %s from s3://%s/%s", operator_id, bucket, key)

        obj = self._client().get_object(Bucket=bucket, Key=key)
        data = obj["Body"].read()
        validate_zip_bytes(data)
        with ZipTables(data) as tables:
            return parse_feed(operator_id, tables)
