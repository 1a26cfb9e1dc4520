"""Summary rollup tests, including the single-brand salesperson pivot."""

from datetime import date

from salesboard.core.aggregation import detail_rows, pivot_brand, summarize
from salesboard.core.models import (
    UNKNOWN_BRAND,
    BrandSummaryRow,
    PersonSummaryRow,
    WarehouseMode,
)

from conftest import default_frame, default_row, person_frame, person_row

PERSON = WarehouseMode.PERSON
DEFAULT = WarehouseMode.DEFAULT


class TestPersonPivot:
    def test_end_to_end_single_brand(self):
        records = person_frame(
            [
                person_row(brand="X", sales="Alice", amount=100, cost=40, quantity=0),
                person_row(brand="X", sales="Bob", amount=50, cost=10, quantity=0),
                person_row(brand="X", sales="Alice", amount=0, cost=20, quantity=0),
            ]
        )
        summary = summarize(records, PERSON, ["X"])

        assert summary.is_pivoted
        assert summary.pivot_brand == "X"
        assert summary.rows == [
            PersonSummaryRow(person="Alice", total_quantity=0, total_amount=100, profit=60, free_issue=20),
            PersonSummaryRow(person="Bob", total_quantity=0, total_amount=50, profit=40, free_issue=0),
        ]

    def test_pivot_amount_matches_brand_total(self):
        rows = [
            person_row(brand="X", sales="Alice", amount=30, cost=10),
            person_row(brand="X", sales="Bob", amount=70, cost=20),
            person_row(brand="X", sales="Carol", amount=15, cost=5),
        ]
        records = person_frame(rows)
        pivoted = summarize(records, PERSON, ["X"])
        assert sum(r.total_amount for r in pivoted.rows) == 115
        assert pivoted.totals.total_amount == 115

    def test_pivot_from_filtered_brands(self):
        # Catalog has two brands but the filtered set only one
        records = person_frame([person_row(brand="Y", sales="Bob", amount=5, cost=1)])
        summary = summarize(records, PERSON, ["X", "Y"])
        assert summary.pivot_brand == "Y"
        assert isinstance(summary.rows[0], PersonSummaryRow)

    def test_pivot_from_catalog_when_no_brand_observed(self):
        records = person_frame([person_row(brand=None, sales="Bob", amount=99)])
        summary = summarize(records, PERSON, ["X"])
        assert summary.pivot_brand == "X"
        assert summary.rows == []
        assert summary.totals.total_amount == 0

    def test_pivot_restricts_to_single_brand_records(self):
        records = person_frame(
            [
                person_row(brand="X", sales="Alice", amount=10, cost=4, product_id="P1"),
                person_row(brand=None, sales="Bob", amount=99, cost=0, product_id="P2"),
            ]
        )
        summary = summarize(records, PERSON, ["X"])
        assert summary.pivot_brand == "X"
        assert [r.person for r in summary.rows] == ["Alice"]
        assert summary.totals.total_amount == 10
        assert summary.totals.product_count == 1

    def test_observed_brand_wins_over_catalog(self):
        records = person_frame([person_row(brand="Y")])
        assert pivot_brand(records, PERSON, ["X"]) == "Y"

    def test_no_pivot_in_default_mode(self):
        records = default_frame([default_row(brand="X")])
        assert pivot_brand(records, DEFAULT, ["X"]) is None
        assert summarize(records, DEFAULT, ["X"]).grouping == "brand"


class TestPersonBrandRollup:
    def test_free_issue_excluded_from_sales_figures(self):
        records = person_frame(
            [
                person_row(brand="X", amount=0, cost=50, quantity=3),
                person_row(brand="Y", amount=10, cost=4, quantity=1),
            ]
        )
        summary = summarize(records, PERSON, ["X", "Y"])
        x = next(r for r in summary.rows if r.brand == "X")
        assert x == BrandSummaryRow(
            brand="X", total_quantity=0, total_amount=0, total_cost=0, profit=0, free_issue=50
        )
        assert summary.totals.free_issue == 50
        assert summary.totals.total_quantity == 1
        assert summary.totals.total_profit == 6

    def test_rows_sorted_by_amount_descending(self):
        records = person_frame(
            [
                person_row(brand="X", amount=10),
                person_row(brand="Y", amount=300),
                person_row(brand="Z", amount=20),
            ]
        )
        summary = summarize(records, PERSON, ["X", "Y", "Z"])
        assert [r.brand for r in summary.rows] == ["Y", "Z", "X"]

    def test_null_brand_grouped_as_unknown(self):
        records = person_frame(
            [person_row(brand="X"), person_row(brand="Y"), person_row(brand=None)]
        )
        summary = summarize(records, PERSON, ["X", "Y"])
        assert {r.brand for r in summary.rows} == {"X", "Y", UNKNOWN_BRAND}


class TestDefaultRollup:
    def test_amount_and_pieces(self):
        records = default_frame(
            [
                default_row(brand="X", quantity=4, unit_price=2.5, pieces=2),
                default_row(brand="X", quantity=1, unit_price=10, pieces=1),
                default_row(brand="Y", quantity=2, unit_price=1, pieces=5),
            ]
        )
        summary = summarize(records, DEFAULT, ["X", "Y"])
        assert summary.rows[0] == BrandSummaryRow(brand="X", total_quantity=3, total_amount=20)
        assert summary.rows[1] == BrandSummaryRow(brand="Y", total_quantity=5, total_amount=2)
        assert summary.totals.total_quantity == 8
        assert summary.totals.total_amount == 22
        assert summary.totals.total_profit == 0
        assert summary.totals.brand_count == 2

    def test_empty_input(self):
        summary = summarize(default_frame([]), DEFAULT, [])
        assert summary.rows == []
        assert summary.totals.total_amount == 0
        assert summary.totals.product_count == 0


class TestDetailRows:
    def test_default_mode_line_amount_newest_first(self):
        records = default_frame(
            [
                default_row(sale_date="2024-05-01", quantity=2, unit_price=3),
                default_row(sale_date="2024-05-09", quantity=1, unit_price=4),
            ]
        )
        details = detail_rows(records, DEFAULT)
        assert list(details["sale_date"]) == [date(2024, 5, 9), date(2024, 5, 1)]
        assert list(details["amount"]) == [4, 6]

    def test_person_mode_profit(self):
        details = detail_rows(person_frame([person_row(amount=10, cost=7)]), PERSON)
        assert details.loc[0, "profit"] == 3
