"""Aggregations behind the bar and pie charts."""
from typing import Dict, List, Sequence, Tuple

from insightboard.core.schemas import CellValue, Record
from insightboard.services.inference import to_number

UNKNOWN_LABEL = "Unknown"


def category_label(value: CellValue) -> str:
    """Stringify a category value; missing values collapse to 'Unknown'."""
    if value is None or value == "":
        return UNKNOWN_LABEL
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def group_average(rows: Sequence[Record], category_col: str, value_col: str) -> List[Tuple[str, float]]:
    """
    Mean of `value_col` per distinct `category_col` label, in first-seen order.

    Non-numeric and missing values count as 0 towards the mean.
    """
    totals: Dict[str, List[float]] = {}
    for row in rows:
        label = category_label(row.get(category_col))
        bucket = totals.setdefault(label, [0.0, 0])
        bucket[0] += to_number(row.get(value_col))
        bucket[1] += 1
    return [(label, total / count) for label, (total, count) in totals.items()]


def frequency_distribution(rows: Sequence[Record], col: str) -> List[Tuple[str, int]]:
    """Occurrence count per label, most frequent first; ties keep first-seen order."""
    counts: Dict[str, int] = {}
    for row in rows:
        label = category_label(row.get(col))
        counts[label] = counts.get(label, 0) + 1
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)
