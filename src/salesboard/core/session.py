"""
Dashboard session: the one object that owns the loaded dataset.

Holds the warehouse mode, date range, cached records and facet
selections for a single user, and coordinates overlapping loads so the
most recently *issued* request is the one that gets applied.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Awaitable, Callable

import pandas as pd

from ..config import Settings
from .aggregation import detail_rows, summarize
from .errors import FetchError, ParseError
from .facets import FilterState
from .models import (
    DashboardReport,
    DateRange,
    ErrorKind,
    Facet,
    FacetOptions,
    Result,
    WarehouseMode,
    default_date_range,
)
from .reconciliation import ReconciliationEngine
from .store import RecordFetcher, RecordStore

logger = logging.getLogger(__name__)


class RequestGate:
    """
    Last-request-wins bookkeeping for loads.

    Every load takes a token from ``issue``. When it settles, ``settle``
    reports whether that token is still the newest one; only then may its
    result be applied, and only then does the loading flag drop.
    """

    def __init__(self):
        self._latest = 0
        self._loading = False

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def latest(self) -> int:
        return self._latest

    def issue(self) -> int:
        self._latest += 1
        self._loading = True
        return self._latest

    def is_current(self, token: int) -> bool:
        return token == self._latest

    def settle(self, token: int) -> bool:
        if not self.is_current(token):
            return False
        self._loading = False
        return True


class Debouncer:
    """
    Coalesces bursts of triggers into one call after a quiet period.

    Only the pending timer is cancelled by a new trigger; a call that has
    already started runs to completion.
    """

    def __init__(self, delay: float, action: Callable[..., Awaitable[Any]]):
        self.delay = delay
        self.action = action
        self._handle: asyncio.TimerHandle | None = None
        self.last_task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self, *args, **kwargs) -> None:
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.delay, self._fire, args, kwargs)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, args: tuple, kwargs: dict) -> None:
        self._handle = None
        self.last_task = asyncio.ensure_future(self.action(*args, **kwargs))
        self.last_task.add_done_callback(self._collect)

    @staticmethod
    def _collect(task: asyncio.Future) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Debounced call failed: %s", exc, exc_info=exc)


class DashboardSession:
    """
    Engine entry point for one dashboard user.

    Usage:
        session = DashboardSession(client, settings)
        await session.reload()
        session.select(Facet.BRAND, ["X"])
        report = session.query().value
    """

    def __init__(
        self,
        client: RecordFetcher,
        settings: Settings | None = None,
        mode: WarehouseMode = WarehouseMode.DEFAULT,
        today: date | None = None,
    ):
        self.settings = settings or Settings()
        self.store = RecordStore(client, batch_size=self.settings.batch_size)
        self.reconciler = ReconciliationEngine()
        self._today = today

        # Requested state; the applied state lives in store / filters
        self.mode = mode
        self.date_range = default_date_range(today)

        self.filters = FilterState(self.store.records, self.store.mode)
        self.brand_catalog: list[str] = []

        self._gate = RequestGate()
        self._debouncer = Debouncer(self.settings.debounce_seconds, self.reload)

    @property
    def loading(self) -> bool:
        return self._gate.loading

    @property
    def applied_mode(self) -> WarehouseMode:
        return self.filters.mode

    @property
    def options(self) -> FacetOptions:
        return self.filters.options

    @property
    def debouncer(self) -> Debouncer:
        return self._debouncer

    # --- loading ---------------------------------------------------------

    async def reload(
        self, date_range: DateRange | None = None, mode: WarehouseMode | None = None
    ) -> Result[int]:
        """
        Load records for the given (or current) date range and mode.

        Returns the number of records applied. A load overtaken by a newer
        one is discarded on arrival and reported as SUPERSEDED.
        """
        date_range = date_range or self.date_range
        mode = mode or self.mode
        token = self._gate.issue()
        logger.info(
            "Load #%d: %s %s..%s", token, mode.table, date_range.start, date_range.end
        )

        try:
            records = await self.store.load(date_range, mode)
        except (FetchError, ParseError) as exc:
            if not self._gate.settle(token):
                return self._superseded(token)
            logger.error("Load #%d failed: %s", token, exc)
            return Result.from_exception(exc)
        except BaseException:
            # Cancelled or unexpected failure; still release the loading flag
            self._gate.settle(token)
            raise

        if not self._gate.settle(token):
            return self._superseded(token)

        self._apply(records, date_range, mode)
        return Result.success(len(records))

    def _superseded(self, token: int) -> Result[int]:
        logger.info("Discarding load #%d; #%d is newer", token, self._gate.latest)
        return Result.failure(ErrorKind.SUPERSEDED, f"load #{token} was superseded")

    def _apply(self, records: pd.DataFrame, date_range: DateRange, mode: WarehouseMode) -> None:
        self.store.replace(records, date_range, mode)
        self.filters = FilterState(records, mode)
        self.brand_catalog = self.filters.catalog.brand_catalog(records)

    def set_date_range(self, date_range: DateRange) -> None:
        """Record a date-range edit; the load starts after the debounce delay."""
        self.date_range = date_range
        self._debouncer.trigger(date_range, self.mode)

    async def switch_mode(self) -> Result[int]:
        """Toggle between the warehouse and salesperson tables."""
        self._debouncer.cancel()
        self.mode = self.mode.toggled()
        self.date_range = default_date_range(self._today)
        return await self.reload()

    async def clear_filters(self) -> Result[DashboardReport]:
        """Reset the date range and every selection, reload, and re-query."""
        self._debouncer.cancel()
        self.date_range = default_date_range(self._today)
        loaded = await self.reload()
        if not loaded.ok:
            return Result.failure(loaded.kind, loaded.error)
        return self.query()

    # --- filtering & reports ---------------------------------------------

    def select(self, facet: Facet, values) -> FacetOptions:
        return self.filters.select(facet, values)

    def filtered_records(self) -> pd.DataFrame:
        return self.filters.apply()

    def query(self) -> Result[DashboardReport]:
        filtered = self.filters.apply()
        mode = self.applied_mode
        report = DashboardReport(
            summary=summarize(filtered, mode, self.brand_catalog),
            reconciliation=self.reconciler.reconcile(filtered, mode),
            record_count=len(filtered),
        )
        return Result.success(report)

    def details(self) -> pd.DataFrame:
        return detail_rows(self.filters.apply(), self.applied_mode)
