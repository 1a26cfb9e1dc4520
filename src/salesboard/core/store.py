"""
Batched loading of a date range's transactions from the record interface.
"""

import logging
from typing import Any, Protocol

import pandas as pd

from .models import DateRange, WarehouseMode
from .parsers import RecordNormalizer

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50_000


class RecordFetcher(Protocol):
    async def fetch_records(
        self,
        table: str,
        fields: list[str],
        predicates: dict[str, Any] | None = None,
        offset: int = 0,
        limit: int = DEFAULT_BATCH_SIZE,
    ) -> list[dict]: ...


class RecordStore:
    """
    Fetches and caches the full transaction set for one date range and mode.

    Pages are requested at increasing offsets until one comes back shorter
    than the batch size. A final page that is exactly full therefore costs
    one extra, empty round trip.

    A load is all-or-nothing: if any page fails the error propagates and
    the rows gathered so far are dropped. The cached set only changes
    through ``replace``, so a failed or discarded load leaves it untouched.
    """

    def __init__(self, client: RecordFetcher, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.client = client
        self.batch_size = batch_size
        self.mode = WarehouseMode.DEFAULT
        self.date_range: DateRange | None = None
        self._records = RecordNormalizer(self.mode).empty_frame()

    @property
    def records(self) -> pd.DataFrame:
        return self._records

    async def load(self, date_range: DateRange, mode: WarehouseMode) -> pd.DataFrame:
        """Fetch every record in ``date_range`` for ``mode``; does not touch the cache."""
        normalizer = RecordNormalizer(mode)
        predicates = {"sale_date": {"gte": date_range.start, "lte": date_range.end}}
        rows = await self.fetch_all(mode.table, normalizer.wire_fields, predicates)
        return normalizer.normalize(rows)

    async def fetch_all(
        self, table: str, fields: list[str], predicates: dict[str, Any]
    ) -> list[dict]:
        accumulated: list[dict] = []
        offset = 0
        requests = 0
        while True:
            batch = await self.client.fetch_records(
                table, fields, predicates, offset=offset, limit=self.batch_size
            )
            requests += 1
            accumulated.extend(batch)
            if len(batch) < self.batch_size:
                break
            offset += self.batch_size

        logger.info("Loaded %d rows from %s in %d request(s)", len(accumulated), table, requests)
        return accumulated

    def replace(
        self, records: pd.DataFrame, date_range: DateRange, mode: WarehouseMode
    ) -> None:
        """Swap in a freshly loaded record set (no merging with the old one)."""
        self._records = records
        self.date_range = date_range
        self.mode = mode
