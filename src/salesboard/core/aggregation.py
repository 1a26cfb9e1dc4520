"""
Summary rollups for the dashboard.

Computes:
- Brand-level rows (default and person mode)
- Salesperson-level rows when a person-mode dataset is single-brand
- Stat-card totals
- Per-record detail columns (line amount, profit)
"""

import logging

import numpy as np
import pandas as pd

from .models import (
    UNKNOWN_BRAND,
    UNKNOWN_PERSON,
    BrandSummaryRow,
    PersonSummaryRow,
    Summary,
    SummaryTotals,
    WarehouseMode,
)

logger = logging.getLogger(__name__)


def pivot_brand(
    filtered_df: pd.DataFrame,
    mode: WarehouseMode,
    full_brand_catalog: list[str],
) -> str | None:
    """
    Return the brand to pivot on, or None for a normal brand rollup.

    Person mode only. The dataset counts as single-brand when the filtered
    records show exactly one brand, or when the whole dataset's brand
    catalog has exactly one entry. The observed brand wins when both apply.
    """
    if mode is not WarehouseMode.PERSON:
        return None

    observed = sorted(set(filtered_df["brand"].dropna().tolist()))
    if len(observed) == 1:
        return observed[0]
    if len(full_brand_catalog) == 1:
        return full_brand_catalog[0]
    return None


def _with_sale_columns(df: pd.DataFrame, mode: WarehouseMode) -> pd.DataFrame:
    """
    Add the per-record figures the rollups sum over.

    Default mode: amount = quantity * unit_price, quantity totals use pieces.
    Person mode: amount == 0 marks a free-issue record whose cost is
    tracked separately from the sale figures.
    """
    out = df.copy()
    if mode is WarehouseMode.PERSON:
        is_free = out["amount"] == 0
        out["sale_quantity"] = np.where(is_free, 0.0, out["quantity"])
        out["sale_amount"] = np.where(is_free, 0.0, out["amount"])
        out["sale_cost"] = np.where(is_free, 0.0, out["cost"])
        out["free_issue"] = np.where(is_free, out["cost"], 0.0)
        out["profit"] = out["sale_amount"] - out["sale_cost"]
    else:
        out["sale_quantity"] = out["pieces"]
        out["sale_amount"] = out["quantity"] * out["unit_price"]
        out["sale_cost"] = 0.0
        out["free_issue"] = 0.0
        out["profit"] = 0.0
    return out


def _rollup(df: pd.DataFrame, key_col: str, fallback: str) -> pd.DataFrame:
    grouped = (
        df.assign(group_key=df[key_col].fillna(fallback))
        .groupby("group_key", sort=False)
        .agg(
            total_quantity=("sale_quantity", "sum"),
            total_amount=("sale_amount", "sum"),
            total_cost=("sale_cost", "sum"),
            profit=("profit", "sum"),
            free_issue=("free_issue", "sum"),
        )
        .reset_index()
    )
    return grouped.sort_values("total_amount", ascending=False, kind="mergesort")


def _totals(df: pd.DataFrame) -> SummaryTotals:
    return SummaryTotals(
        total_quantity=float(df["sale_quantity"].sum()),
        total_amount=float(df["sale_amount"].sum()),
        total_profit=float(df["profit"].sum()),
        free_issue=float(df["free_issue"].sum()),
        product_count=int(df["product_id"].dropna().nunique()),
        brand_count=int(df["brand"].dropna().nunique()),
    )


def summarize(
    filtered_df: pd.DataFrame,
    mode: WarehouseMode,
    full_brand_catalog: list[str],
) -> Summary:
    """
    Reduce a filtered record set to summary rows and card totals.

    Rows are grouped by brand, except for single-brand person-mode data,
    which is grouped by salesperson over that brand's records (totals are
    recomputed from the same subset). Rows are sorted by total_amount,
    largest first. An empty input gives no rows and zero totals.
    """
    brand = pivot_brand(filtered_df, mode, full_brand_catalog)
    grouping = "person" if brand is not None else "brand"

    if filtered_df.empty:
        return Summary(grouping=grouping, pivot_brand=brand)

    df = _with_sale_columns(filtered_df, mode)

    if brand is not None:
        subset = df[df["brand"] == brand]
        grouped = _rollup(subset, "sales_person", UNKNOWN_PERSON)
        rows = [
            PersonSummaryRow(
                person=r.group_key,
                total_quantity=float(r.total_quantity),
                total_amount=float(r.total_amount),
                profit=float(r.profit),
                free_issue=float(r.free_issue),
            )
            for r in grouped.itertuples(index=False)
        ]
        logger.debug("Pivoted %d records of brand %s to %d salespeople", len(subset), brand, len(rows))
        return Summary(grouping=grouping, rows=rows, totals=_totals(subset), pivot_brand=brand)

    grouped = _rollup(df, "brand", UNKNOWN_BRAND)
    rows = [
        BrandSummaryRow(
            brand=r.group_key,
            total_quantity=float(r.total_quantity),
            total_amount=float(r.total_amount),
            total_cost=float(r.total_cost),
            profit=float(r.profit),
            free_issue=float(r.free_issue),
        )
        for r in grouped.itertuples(index=False)
    ]
    return Summary(grouping=grouping, rows=rows, totals=_totals(df))


def detail_rows(filtered_df: pd.DataFrame, mode: WarehouseMode) -> pd.DataFrame:
    """
    Filtered records with derived per-line figures, newest sale first.

    Default mode gains ``amount`` (quantity * unit_price); person mode
    gains ``profit`` (amount - cost).
    """
    out = filtered_df.copy()
    if mode is WarehouseMode.PERSON:
        out["profit"] = out["amount"] - out["cost"]
    else:
        out["amount"] = out["quantity"] * out["unit_price"]

    out = out.sort_values(
        "sale_date", ascending=False, na_position="last", kind="mergesort"
    )
    return out.reset_index(drop=True)
