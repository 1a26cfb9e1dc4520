"""
Data model shared by the engine components.

Records themselves live in pandas DataFrames (one row per transaction);
the containers below carry the derived, renderer-facing results.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Generic, TypeVar

from .errors import AuthError, ConfigError, FetchError, ParseError

T = TypeVar("T")

UNKNOWN_BRAND = "Unknown brand"
UNKNOWN_PERSON = "Unknown salesperson"
UNKNOWN_PRODUCT = "Unknown product"

# Columns present in both record shapes
COMMON_COLUMNS = ["sale_date", "product_id", "product_name", "brand", "quantity"]


class WarehouseMode(Enum):
    """Which transaction table (and record shape) is loaded."""

    DEFAULT = "default"  # warehouse table, reconciliation fields
    PERSON = "longqiao"  # salesperson table, amount/cost fields

    @property
    def table(self) -> str:
        return "longqiao_records" if self is WarehouseMode.PERSON else "sales_records"

    @property
    def location_column(self) -> str:
        """Column backing the location facet (warehouse id or salesperson)."""
        return "sales_person" if self is WarehouseMode.PERSON else "warehouse"

    @property
    def columns(self) -> list[str]:
        if self is WarehouseMode.PERSON:
            return COMMON_COLUMNS + ["sales_person", "customer", "amount", "cost"]
        return COMMON_COLUMNS + [
            "warehouse",
            "unit_price",
            "pieces",
            "returns",
            "inbounds",
            "sorting_difference",
        ]

    @property
    def numeric_columns(self) -> list[str]:
        if self is WarehouseMode.PERSON:
            return ["quantity", "amount", "cost"]
        return [
            "quantity",
            "unit_price",
            "pieces",
            "returns",
            "inbounds",
            "sorting_difference",
        ]

    def toggled(self) -> "WarehouseMode":
        if self is WarehouseMode.PERSON:
            return WarehouseMode.DEFAULT
        return WarehouseMode.PERSON


@dataclass(frozen=True)
class DateRange:
    """Inclusive sale-date window."""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"start {self.start} is after end {self.end}")


def default_date_range(today: date | None = None) -> DateRange:
    """
    Date range shown when the dashboard opens or filters are cleared.

    First of the current month through yesterday. On the first day of a
    month there is no "so far" yet, so the whole previous month is used.
    """
    today = today or date.today()
    if today.day == 1:
        end = today - timedelta(days=1)
        return DateRange(start=end.replace(day=1), end=end)
    return DateRange(start=today.replace(day=1), end=today - timedelta(days=1))


class Facet(Enum):
    """Filter dimensions, in dependency order."""

    LOCATION = "location"
    BRAND = "brand"
    PRODUCT = "product"
    CUSTOMER = "customer"


@dataclass(frozen=True)
class FacetSelection:
    """Selected values per facet. An empty set means "no filter"."""

    location: frozenset = frozenset()
    brand: frozenset = frozenset()
    product: frozenset = frozenset()
    customer: frozenset = frozenset()

    def get(self, facet: Facet) -> frozenset:
        return getattr(self, facet.value)

    def replace(self, **changes) -> "FacetSelection":
        values = {f.value: self.get(f) for f in Facet}
        for name, selected in changes.items():
            values[name] = frozenset(selected or ())
        return FacetSelection(**values)


@dataclass(frozen=True)
class ProductOption:
    product_id: str
    product_name: str


@dataclass
class FacetOptions:
    """Candidate values for each facet dropdown."""

    location: list[str] = field(default_factory=list)
    brand: list[str] = field(default_factory=list)
    product: list[ProductOption] = field(default_factory=list)
    customer: list[str] = field(default_factory=list)


@dataclass
class BrandSummaryRow:
    brand: str
    total_quantity: float = 0
    total_amount: float = 0
    total_cost: float = 0
    profit: float = 0
    free_issue: float = 0


@dataclass
class PersonSummaryRow:
    person: str
    total_quantity: float = 0
    total_amount: float = 0
    profit: float = 0
    free_issue: float = 0


@dataclass
class SummaryTotals:
    """Figures for the dashboard's stat cards."""

    total_quantity: float = 0
    total_amount: float = 0
    total_profit: float = 0
    free_issue: float = 0
    product_count: int = 0
    brand_count: int = 0


@dataclass
class Summary:
    """Rollup of a filtered record set, grouped by brand or by salesperson."""

    grouping: str  # "brand" or "person"
    rows: list[BrandSummaryRow | PersonSummaryRow] = field(default_factory=list)
    totals: SummaryTotals = field(default_factory=SummaryTotals)
    pivot_brand: str | None = None

    @property
    def is_pivoted(self) -> bool:
        return self.grouping == "person"


@dataclass
class ReconciliationRow:
    product_id: str
    product_name: str
    inbounds: float
    sold_quantity: float
    returns_adjusted: float
    difference: float


@dataclass
class ReconciliationTotals:
    inbounds: float = 0
    sold_quantity: float = 0
    returns: float = 0
    sorting_difference: float = 0
    difference: float = 0


@dataclass
class ReconciliationReport:
    rows: list[ReconciliationRow] = field(default_factory=list)
    totals: ReconciliationTotals = field(default_factory=ReconciliationTotals)

    @property
    def has_discrepancies(self) -> bool:
        return len(self.rows) > 0


@dataclass
class DashboardReport:
    """Everything a renderer needs for one query action."""

    summary: Summary
    reconciliation: ReconciliationReport
    record_count: int


class ErrorKind(Enum):
    FETCH = "fetch"
    PARSE = "parse"
    CONFIG = "config"
    AUTH = "auth"
    SUPERSEDED = "superseded"  # a newer request replaced this one


@dataclass
class Result(Generic[T]):
    """Outcome of a session operation; renderers decide how to present errors."""

    value: T | None = None
    kind: ErrorKind | None = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.kind is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, error: str = "") -> "Result[T]":
        return cls(kind=kind, error=error)

    @classmethod
    def from_exception(cls, exc: Exception) -> "Result[T]":
        # Subclasses first: ConfigError and AuthError are FetchErrors
        if isinstance(exc, AuthError):
            kind = ErrorKind.AUTH
        elif isinstance(exc, ConfigError):
            kind = ErrorKind.CONFIG
        elif isinstance(exc, FetchError):
            kind = ErrorKind.FETCH
        elif isinstance(exc, ParseError):
            kind = ErrorKind.PARSE
        else:
            raise exc
        return cls.failure(kind, str(exc))
