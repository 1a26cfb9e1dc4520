# In-memory filtering & aggregation engine for the sales dashboard
# Everything here works on pandas frames already loaded by the RecordStore

from .errors import SalesboardError, FetchError, ConfigError, AuthError, ParseError
from .models import (
    WarehouseMode,
    DateRange,
    default_date_range,
    Facet,
    FacetSelection,
    FacetOptions,
    ProductOption,
    BrandSummaryRow,
    PersonSummaryRow,
    Summary,
    SummaryTotals,
    ReconciliationRow,
    ReconciliationTotals,
    ReconciliationReport,
    DashboardReport,
    ErrorKind,
    Result,
)
from .parsers import DateParser, TextNormalizer, RecordNormalizer
from .facets import FacetCatalog, FilterState, apply_facets
from .aggregation import summarize, pivot_brand, detail_rows
from .reconciliation import ReconciliationEngine
from .store import RecordStore
from .session import DashboardSession, Debouncer, RequestGate

__all__ = [
    "SalesboardError",
    "FetchError",
    "ConfigError",
    "AuthError",
    "ParseError",
    "WarehouseMode",
    "DateRange",
    "default_date_range",
    "Facet",
    "FacetSelection",
    "FacetOptions",
    "ProductOption",
    "BrandSummaryRow",
    "PersonSummaryRow",
    "Summary",
    "SummaryTotals",
    "ReconciliationRow",
    "ReconciliationTotals",
    "ReconciliationReport",
    "DashboardReport",
    "ErrorKind",
    "Result",
    "DateParser",
    "TextNormalizer",
    "RecordNormalizer",
    "FacetCatalog",
    "FilterState",
    "apply_facets",
    "summarize",
    "pivot_brand",
    "detail_rows",
    "ReconciliationEngine",
    "RecordStore",
    "DashboardSession",
    "Debouncer",
    "RequestGate",
]
