import asyncio
from datetime import date

import pytest

from salesboard.core.errors import FetchError
from salesboard.core.models import WarehouseMode
from salesboard.core.parsers import RecordNormalizer


def person_row(**overrides) -> dict:
    """A longqiao_records row, using the backend's column names."""
    row = {
        "sale_date": "2024-05-10",
        "product_id": "P1",
        "product_name": "Cola 500ml",
        "brand": "X",
        "sales": "Alice",
        "customer": "Shop A",
        "quantity": 1,
        "amount": 10,
        "cost": 5,
    }
    row.update(overrides)
    return row


def default_row(**overrides) -> dict:
    """A sales_records row, using the backend's column names."""
    row = {
        "sale_date": "2024-05-10",
        "product_id": "P1",
        "product_name": "Cola 500ml",
        "brand": "X",
        "warehouse": "WH-1",
        "quantity": 1,
        "unit_price": 2.5,
        "pieces": 1,
        "returns": 0,
        "inbounds": 1,
        "difference": 0,
    }
    row.update(overrides)
    return row


def person_frame(rows):
    return RecordNormalizer(WarehouseMode.PERSON).normalize(rows)


def default_frame(rows):
    return RecordNormalizer(WarehouseMode.DEFAULT).normalize(rows)


class FakeBackend:
    """Serves slices of an in-memory row list, like the record interface."""

    def __init__(self, rows=None, fail_on_call: int | None = None, error: Exception | None = None):
        self.rows = rows or []
        self.fail_on_call = fail_on_call
        self.error = error or FetchError("upstream exploded", 500)
        self.calls: list[dict] = []

    async def fetch_records(self, table, fields, predicates=None, offset=0, limit=50_000):
        self.calls.append(
            {
                "table": table,
                "fields": fields,
                "predicates": predicates,
                "offset": offset,
                "limit": limit,
            }
        )
        if self.fail_on_call == len(self.calls):
            raise self.error
        return self.rows[offset : offset + limit]


class ControlledBackend:
    """Each request waits until the test resolves its future."""

    def __init__(self):
        self.pending: list[tuple[dict, asyncio.Future]] = []

    async def fetch_records(self, table, fields, predicates=None, offset=0, limit=50_000):
        future = asyncio.get_running_loop().create_future()
        self.pending.append((predicates, future))
        return await future


@pytest.fixture()
def today() -> date:
    return date(2024, 5, 15)


@pytest.fixture()
def person_records():
    return person_frame(
        [
            person_row(product_id="P1", product_name="Cola", brand="X", sales="Alice", customer="Shop A"),
            person_row(product_id="P2", product_name="Apple juice", brand="Y", sales="Bob", customer="Shop B"),
            person_row(product_id="P3", product_name="Beer", brand="Y", sales="Alice", customer="Shop C"),
            person_row(product_id="P4", product_name="Water", brand=None, sales="Carol", customer="Shop A"),
            person_row(product_id="P1", product_name="Cola (old name)", brand="X", sales="Bob", customer="Shop D"),
        ]
    )


@pytest.fixture()
def default_records():
    return default_frame(
        [
            default_row(product_id="P1", product_name="Cola", brand="X", warehouse="WH-2"),
            default_row(product_id="P2", product_name="Apple juice", brand="Y", warehouse="WH-1"),
            default_row(product_id="P3", product_name="Beer", brand="Y", warehouse="WH-2"),
            default_row(product_id="P4", product_name="Water", brand="Z", warehouse=""),
        ]
    )
