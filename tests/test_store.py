"""Batched record loading tests."""

from datetime import date

import pytest

from salesboard.core.errors import FetchError
from salesboard.core.models import DateRange, WarehouseMode
from salesboard.core.store import RecordStore

from conftest import FakeBackend, default_row, person_row

MAY = DateRange(start=date(2024, 5, 1), end=date(2024, 5, 14))


def _rows(n):
    return [default_row(product_id=f"P{i}") for i in range(n)]


class TestBatchedLoad:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "total, batch_size, expected_requests",
        [
            (0, 10, 1),
            (7, 10, 1),
            (10, 10, 2),  # a full last page needs one more empty round trip
            (25, 10, 3),
            (30, 10, 4),
        ],
    )
    async def test_request_count(self, total, batch_size, expected_requests):
        backend = FakeBackend(_rows(total))
        store = RecordStore(backend, batch_size=batch_size)

        records = await store.load(MAY, WarehouseMode.DEFAULT)

        assert len(records) == total
        assert len(backend.calls) == expected_requests
        assert [c["offset"] for c in backend.calls] == [i * batch_size for i in range(expected_requests)]

    @pytest.mark.asyncio
    async def test_request_shape(self):
        backend = FakeBackend([person_row()])
        store = RecordStore(backend, batch_size=5)

        await store.load(MAY, WarehouseMode.PERSON)

        call = backend.calls[0]
        assert call["table"] == "longqiao_records"
        assert "sales" in call["fields"]
        assert call["predicates"] == {"sale_date": {"gte": MAY.start, "lte": MAY.end}}
        assert call["limit"] == 5

    @pytest.mark.asyncio
    async def test_failed_batch_aborts_whole_load(self):
        backend = FakeBackend(_rows(25), fail_on_call=2)
        store = RecordStore(backend, batch_size=10)

        with pytest.raises(FetchError):
            await store.load(MAY, WarehouseMode.DEFAULT)

        assert len(backend.calls) == 2
        assert store.records.empty

    @pytest.mark.asyncio
    async def test_load_does_not_touch_cache(self):
        store = RecordStore(FakeBackend(_rows(3)), batch_size=10)
        records = await store.load(MAY, WarehouseMode.DEFAULT)
        assert store.records.empty

        store.replace(records, MAY, WarehouseMode.DEFAULT)
        assert len(store.records) == 3
        assert store.date_range == MAY

    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValueError):
            RecordStore(FakeBackend(), batch_size=0)
