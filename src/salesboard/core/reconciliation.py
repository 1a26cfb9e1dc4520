"""
Inventory reconciliation for the default warehouse table.

Compares, per product, what came in (inbounds) against what went out
(sold quantity) once returns and the warehouse's sorting adjustments are
taken into account. Products whose figures balance are dropped; the rest
are ranked by the size of the gap.
"""

import logging

import numpy as np
import pandas as pd

from .models import (
    UNKNOWN_PRODUCT,
    ReconciliationReport,
    ReconciliationRow,
    ReconciliationTotals,
    WarehouseMode,
)

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """
    Per-product inbound / sold / returned reconciliation.

    difference = sold_quantity - inbounds + returns + sorting_difference

    Usage:
        report = ReconciliationEngine().reconcile(filtered_df, WarehouseMode.DEFAULT)
        report.rows      # non-zero differences, largest gap first
        report.totals    # dataset-level sums over every product
    """

    def reconcile(
        self, filtered_df: pd.DataFrame, mode: WarehouseMode = WarehouseMode.DEFAULT
    ) -> ReconciliationReport:
        # Person-mode records carry no inbound/returns data
        if mode is not WarehouseMode.DEFAULT or filtered_df.empty:
            return ReconciliationReport()

        grouped = self.aggregate_by_product(filtered_df)
        totals = self._totals(grouped)

        gaps = grouped[grouped["difference"] != 0].copy()
        gaps["abs_difference"] = np.abs(gaps["difference"])
        gaps = gaps.sort_values("abs_difference", ascending=False, kind="mergesort")

        rows = [
            ReconciliationRow(
                product_id=r.product_id,
                product_name=r.product_name,
                inbounds=float(r.inbounds),
                sold_quantity=float(r.sold_quantity),
                returns_adjusted=float(r.returns + r.sorting_difference),
                difference=float(r.difference),
            )
            for r in gaps.itertuples(index=False)
        ]

        logger.info(
            "Reconciled %d products: %d with differences (net %.2f)",
            len(grouped),
            len(rows),
            totals.difference,
        )
        return ReconciliationReport(rows=rows, totals=totals)

    @staticmethod
    def aggregate_by_product(filtered_df: pd.DataFrame) -> pd.DataFrame:
        """
        Sum the reconciliation fields per product_id, first-seen order.

        Returns DataFrame with:
        - product_id, product_name (first seen)
        - inbounds, sold_quantity, returns, sorting_difference
        - difference
        """
        grouped = (
            filtered_df.groupby("product_id", sort=False, dropna=False)
            .agg(
                product_name=("product_name", "first"),
                inbounds=("inbounds", "sum"),
                sold_quantity=("quantity", "sum"),
                returns=("returns", "sum"),
                sorting_difference=("sorting_difference", "sum"),
            )
            .reset_index()
        )
        grouped["product_name"] = grouped["product_name"].fillna(UNKNOWN_PRODUCT)
        grouped["difference"] = (
            grouped["sold_quantity"]
            - grouped["inbounds"]
            + grouped["returns"]
            + grouped["sorting_difference"]
        )
        return grouped

    @staticmethod
    def _totals(grouped: pd.DataFrame) -> ReconciliationTotals:
        inbounds = float(grouped["inbounds"].sum())
        sold = float(grouped["sold_quantity"].sum())
        returns = float(grouped["returns"].sum())
        sorting = float(grouped["sorting_difference"].sum())
        return ReconciliationTotals(
            inbounds=inbounds,
            sold_quantity=sold,
            returns=returns,
            sorting_difference=sorting,
            difference=sold - inbounds + returns + sorting,
        )
