"""
Cascading facet filters over a loaded record frame.

The four facets form a small dependency graph: each facet's candidate
list is computed from records that already match the selections of the
facets it depends on. Changing a selection resets and re-derives every
facet downstream of it, and nothing upstream.
"""

import logging

import pandas as pd

from .models import (
    UNKNOWN_PRODUCT,
    Facet,
    FacetOptions,
    FacetSelection,
    ProductOption,
    WarehouseMode,
)

logger = logging.getLogger(__name__)

# facet -> facets whose selections restrict its candidates
FACET_DEPENDENCIES: dict[Facet, tuple[Facet, ...]] = {
    Facet.LOCATION: (),
    Facet.BRAND: (Facet.LOCATION,),
    Facet.PRODUCT: (Facet.LOCATION, Facet.BRAND),
    Facet.CUSTOMER: (Facet.LOCATION, Facet.BRAND),
}


def downstream_of(facet: Facet) -> list[Facet]:
    """All facets that depend on ``facet``, directly or transitively."""
    found: set[Facet] = set()
    frontier = [facet]
    while frontier:
        current = frontier.pop()
        for candidate, parents in FACET_DEPENDENCIES.items():
            if current in parents and candidate not in found:
                found.add(candidate)
                frontier.append(candidate)
    # Keep declaration order so callers re-derive upstream-first
    return [f for f in Facet if f in found]


def facet_column(facet: Facet, mode: WarehouseMode) -> str:
    if facet is Facet.LOCATION:
        return mode.location_column
    if facet is Facet.PRODUCT:
        return "product_id"
    return facet.value


def facet_applies(facet: Facet, mode: WarehouseMode) -> bool:
    return facet is not Facet.CUSTOMER or mode is WarehouseMode.PERSON


def apply_facets(
    records: pd.DataFrame,
    mode: WarehouseMode,
    selection: FacetSelection,
    facets: tuple[Facet, ...] | list[Facet] | None = None,
) -> pd.DataFrame:
    """
    Return the records matching every non-empty selection.

    Pure: the input frame is never modified and the result is a copy.
    Facets are intersected, so their order does not matter.
    """
    mask = pd.Series(True, index=records.index)
    for facet in facets if facets is not None else list(Facet):
        if not facet_applies(facet, mode):
            continue
        selected = selection.get(facet)
        if selected:
            mask &= records[facet_column(facet, mode)].isin(list(selected))
    return records[mask].copy()


def _distinct_sorted(series: pd.Series) -> list[str]:
    values = {v for v in series.dropna().tolist() if v != ""}
    return sorted(values)


class FacetCatalog:
    """
    Derives the candidate values for each facet dropdown.

    Usage:
        catalog = FacetCatalog(WarehouseMode.PERSON)
        options = catalog.derive(records, selection)
    """

    def __init__(self, mode: WarehouseMode):
        self.mode = mode

    def derive(
        self,
        records: pd.DataFrame,
        upstream: FacetSelection | None = None,
        facets: list[Facet] | None = None,
    ) -> FacetOptions:
        """Compute candidate lists for ``facets`` (all facets by default)."""
        upstream = upstream or FacetSelection()
        options = FacetOptions()
        for facet in facets or list(Facet):
            setattr(options, facet.value, self.candidates(records, facet, upstream))
        return options

    def candidates(
        self, records: pd.DataFrame, facet: Facet, upstream: FacetSelection
    ) -> list:
        if not facet_applies(facet, self.mode):
            return []

        subset = apply_facets(records, self.mode, upstream, FACET_DEPENDENCIES[facet])

        if facet is Facet.PRODUCT:
            return self._products(subset)
        return _distinct_sorted(subset[facet_column(facet, self.mode)])

    def brand_catalog(self, records: pd.DataFrame) -> list[str]:
        """Brands across the whole dataset, ignoring every selection."""
        return _distinct_sorted(records["brand"])

    def _products(self, subset: pd.DataFrame) -> list[ProductOption]:
        # First-seen name wins when one id carries several names
        products = subset[subset["product_id"].notna()].drop_duplicates(
            "product_id", keep="first"
        )
        options = [
            ProductOption(product_id=pid, product_name=name or UNKNOWN_PRODUCT)
            for pid, name in zip(products["product_id"], products["product_name"])
        ]
        return sorted(options, key=lambda p: (p.product_name, p.product_id))


class FilterState:
    """
    The user's current facet selections over one loaded dataset.

    ``select`` is the single entry point for changes: it stores the new
    selection, clears every downstream selection, and refreshes the
    downstream candidate lists.
    """

    def __init__(self, records: pd.DataFrame, mode: WarehouseMode):
        self._records = records
        self.mode = mode
        self.catalog = FacetCatalog(mode)
        self.selection = FacetSelection()
        self.options = self.catalog.derive(records, self.selection)

    @property
    def records(self) -> pd.DataFrame:
        return self._records

    def select(self, facet: Facet, values) -> FacetOptions:
        if not facet_applies(facet, self.mode):
            raise ValueError(f"{facet.value} facet does not apply in {self.mode.value} mode")

        if isinstance(values, str):
            values = [values]

        downstream = downstream_of(facet)
        changes = {facet.value: frozenset(values or ())}
        changes.update({f.value: frozenset() for f in downstream})
        self.selection = self.selection.replace(**changes)

        for f in downstream:
            setattr(
                self.options,
                f.value,
                self.catalog.candidates(self._records, f, self.selection),
            )

        logger.debug(
            "%s -> %d value(s); reset %s",
            facet.value,
            len(changes[facet.value]),
            [f.value for f in downstream],
        )
        return self.options

    def clear(self, facet: Facet) -> FacetOptions:
        return self.select(facet, ())

    def reset(self) -> FacetOptions:
        """Drop every selection and re-derive all candidate lists."""
        self.selection = FacetSelection()
        self.options = self.catalog.derive(self._records, self.selection)
        return self.options

    def apply(self, records: pd.DataFrame | None = None) -> pd.DataFrame:
        """Filter ``records`` (the loaded set by default) by the current selection."""
        base = self._records if records is None else records
        return apply_facets(base, self.mode, self.selection)
