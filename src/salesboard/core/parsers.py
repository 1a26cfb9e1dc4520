"""
Parsers that turn raw backend rows into a typed record frame.

Rows arrive as flat JSON objects with the backend's column names. These
parsers handle the messy parts:
- Dates as plain dates or full timestamps
- Missing / null numeric fields (zero-defaulted, never raised)
- Blank text fields (treated as missing)
- Wire column names that differ from the engine's names
"""

import logging
from datetime import date, datetime
from typing import Any

import pandas as pd

from .errors import ParseError
from .models import WarehouseMode

logger = logging.getLogger(__name__)


class DateParser:
    """
    Date parser for the sale_date column.

    The backend returns ISO dates, but timestamp columns and older exports
    show up with a time part or slashes.
    """

    DATE_FORMATS = [
        "%Y-%m-%d",  # ISO: 2024-07-25
        "%Y-%m-%dT%H:%M:%S",  # timestamp: 2024-07-25T00:00:00
        "%Y-%m-%d %H:%M:%S",  # timestamp with space
        "%Y/%m/%d",  # ISO slash: 2024/07/25
    ]

    def __init__(self, custom_formats: list[str] | None = None):
        self.formats = (custom_formats or []) + self.DATE_FORMATS
        self._cache: dict[str, date | None] = {}

    def parse(self, value: Any) -> date | None:
        """Parse a single value, trying each format in turn."""
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value

        text = str(value).strip()
        if not text:
            return None

        if text in self._cache:
            return self._cache[text]

        # Drop timezone / fractional seconds suffixes
        candidate = text[:19]
        for fmt in self.formats:
            try:
                result = datetime.strptime(candidate, fmt).date()
                self._cache[text] = result
                return result
            except ValueError:
                continue

        self._cache[text] = None
        return None

    def parse_series(self, series: pd.Series) -> pd.Series:
        return series.apply(self.parse)


class TextNormalizer:
    """Strips text fields and maps blanks to None."""

    def normalize(self, value: Any) -> str | None:
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return None
        # Integer ids come back as floats when the column also holds nulls
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        result = " ".join(str(value).split())
        return result or None

    def normalize_series(self, series: pd.Series) -> pd.Series:
        return series.apply(self.normalize).astype(object)


class RecordNormalizer:
    """
    Builds the engine's record frame for one warehouse mode.

    The two tables use backend names the engine renames:
    - ``difference`` (default mode) -> ``sorting_difference``
    - ``sales`` (person mode) -> ``sales_person``
    """

    WIRE_RENAMES = {
        WarehouseMode.DEFAULT: {"difference": "sorting_difference"},
        WarehouseMode.PERSON: {"sales": "sales_person"},
    }

    def __init__(self, mode: WarehouseMode):
        self.mode = mode
        self.date_parser = DateParser()
        self.text_normalizer = TextNormalizer()

    @property
    def wire_fields(self) -> list[str]:
        """Projection list to request from the backend."""
        reverse = {v: k for k, v in self.WIRE_RENAMES[self.mode].items()}
        return [reverse.get(col, col) for col in self.mode.columns]

    def empty_frame(self) -> pd.DataFrame:
        return self.normalize([])

    def normalize(self, rows: list[dict]) -> pd.DataFrame:
        """Convert backend rows into a frame with every mode column present."""
        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            raise ParseError("expected a list of record objects")

        df = pd.DataFrame.from_records(rows)
        df = df.rename(columns=self.WIRE_RENAMES[self.mode])

        # Guarantee the full shape even for sparse projections
        for col in self.mode.columns:
            if col not in df.columns:
                df[col] = None
        df = df[self.mode.columns].copy()

        # Numeric fields: anything missing or non-numeric counts as zero
        for col in self.mode.numeric_columns:
            df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0).astype(float)

        text_columns = [
            c
            for c in self.mode.columns
            if c not in self.mode.numeric_columns and c != "sale_date"
        ]
        for col in text_columns:
            df[col] = self.text_normalizer.normalize_series(df[col])

        df["sale_date"] = self.date_parser.parse_series(df["sale_date"]).astype(object)

        unparsed = int(df["sale_date"].isna().sum())
        if unparsed:
            logger.warning("%d %s rows have no parseable sale_date", unparsed, self.mode.table)

        return df.reset_index(drop=True)
