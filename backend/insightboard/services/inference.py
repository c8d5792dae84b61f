"""
Column type inference.

Each column is classified as number, boolean, date or string from a bounded
sample of its leading values. This is a heuristic: the declared type is not
guaranteed to hold for every value beyond the sample window.
"""
import math
import logging
from typing import Any, Dict, Iterable, List, Sequence

import pandas as pd

from insightboard.core.schemas import CellValue, ColumnType, Record

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 100
BOOLEAN_TOKENS = ("true", "false")


def _parse_float(text: str) -> float:
    """float() without Python-only spellings such as '1_000'."""
    if "_" in text:
        raise ValueError(text)
    return float(text)


def is_numeric(value: Any) -> bool:
    """True for native numbers and strings that parse to a non-NaN number."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        try:
            return not math.isnan(_parse_float(value.strip()))
        except ValueError:
            return False
    return False


def to_number(value: CellValue) -> float:
    """
    Lossy numeric coercion used for aggregation.

    Missing and non-numeric values become 0, booleans become 1/0.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return 0.0 if isinstance(value, float) and math.isnan(value) else float(value)
    if isinstance(value, str) and is_numeric(value):
        return _parse_float(value.strip())
    return 0.0


def _is_boolean(value: Any) -> bool:
    return isinstance(value, bool) or value in BOOLEAN_TOKENS


def _is_date(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if not isinstance(value, str):
        return False
    return not pd.isna(pd.to_datetime(value, errors="coerce"))


def _is_blank(value: CellValue) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _sample(rows: Sequence[Record], column: str) -> List[CellValue]:
    values = (row.get(column) for row in rows[:SAMPLE_SIZE])
    return [v for v in values if not _is_blank(v)]


def infer_column_type(values: Iterable[CellValue]) -> ColumnType:
    """Classify already-sampled, non-empty values. Priority: number, boolean, date, string."""
    values = list(values)
    if not values:
        return "string"
    if all(is_numeric(v) for v in values):
        return "number"
    if all(_is_boolean(v) for v in values):
        return "boolean"
    if all(_is_date(v) for v in values):
        return "date"
    return "string"


def infer_column_types(rows: Sequence[Record], columns: Sequence[str]) -> Dict[str, ColumnType]:
    """
    Infer one type per column from the first SAMPLE_SIZE rows.

    Never raises; the worst case is every column typed 'string'.
    """
    column_types: Dict[str, ColumnType] = {
        column: infer_column_type(_sample(rows, column)) for column in columns
    }
    logger.debug(f"Inferred column types: {column_types}")
    return column_types
