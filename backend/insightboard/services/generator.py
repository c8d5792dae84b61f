"""
Chart specification generator.

Picks a fixed menu of charts from the inferred schema: an aggregated bar
chart, a line and a scatter over the first two numeric columns, and a pie of
the first categorical column's distribution. Every chart's data is capped so
the frontend stays responsive on large files.
"""
import logging
from typing import Any, Dict, List, Sequence

from insightboard.core.performance import track_performance
from insightboard.core.schemas import ChartSpec, Record, TabularData
from insightboard.services.aggregation import frequency_distribution, group_average

logger = logging.getLogger(__name__)

MAX_BAR_CATEGORIES = 15
MAX_LINE_POINTS = 50
MAX_PIE_SLICES = 10
MAX_SCATTER_POINTS = 100

# Colorblind-safe categorical palette
CATEGORICAL_PALETTE = [
    '#1f77b4',  # Blue
    '#ff7f0e',  # Orange
    '#2ca02c',  # Green
    '#d62728',  # Red
    '#9467bd',  # Purple
    '#8c564b',  # Brown
    '#e377c2',  # Pink
    '#7f7f7f',  # Gray
    '#bcbd22',  # Yellow-green
    '#17becf',  # Cyan
]


def _project(rows: Sequence[Record], columns: Sequence[str], limit: int) -> List[Dict[str, Any]]:
    return [{column: row.get(column) for column in columns} for row in rows[:limit]]


def bar_chart(data: TabularData, category_col: str, value_col: str) -> ChartSpec:
    averages = group_average(data.rows, category_col, value_col)[:MAX_BAR_CATEGORIES]
    return ChartSpec(
        id="bar-1",
        kind="bar",
        title=f"{value_col} by {category_col}",
        x_axis=category_col,
        y_axis=value_col,
        # {<category_col>: label, <value_col>: mean}, keyed like xAxis/yAxis
        data=[{category_col: label, value_col: mean} for label, mean in averages],
    )


def line_chart(data: TabularData, x_col: str, y_col: str) -> ChartSpec:
    return ChartSpec(
        id="line-1",
        kind="line",
        title=f"{y_col} over {x_col}",
        x_axis=x_col,
        y_axis=y_col,
        data=_project(data.rows, (x_col, y_col), MAX_LINE_POINTS),
    )


def pie_chart(data: TabularData, category_col: str) -> ChartSpec:
    distribution = frequency_distribution(data.rows, category_col)[:MAX_PIE_SLICES]
    return ChartSpec(
        id="pie-1",
        kind="pie",
        title=f"Distribution of {category_col}",
        data_key="value",
        data=[{"name": name, "value": count} for name, count in distribution],
        colors=CATEGORICAL_PALETTE[:len(distribution)],
    )


def scatter_chart(data: TabularData, x_col: str, y_col: str) -> ChartSpec:
    return ChartSpec(
        id="scatter-1",
        kind="scatter",
        title=f"{x_col} vs {y_col}",
        x_axis=x_col,
        y_axis=y_col,
        data=_project(data.rows, (x_col, y_col), MAX_SCATTER_POINTS),
    )


@track_performance("select_visualizations")
def select_visualizations(data: TabularData) -> List[ChartSpec]:
    """
    Build the chart menu for a dataset, in the order bar, line, pie, scatter.

    Charts whose column requirements aren't met are left out. The result may
    be empty.
    """
    numeric_columns = [c for c in data.columns if data.column_types[c] == "number"]
    string_columns = [c for c in data.columns if data.column_types[c] == "string"]

    charts: List[ChartSpec] = []
    if string_columns and numeric_columns:
        charts.append(bar_chart(data, string_columns[0], numeric_columns[0]))
    if len(numeric_columns) >= 2:
        charts.append(line_chart(data, numeric_columns[0], numeric_columns[1]))
    if string_columns:
        charts.append(pie_chart(data, string_columns[0]))
    if len(numeric_columns) >= 2:
        charts.append(scatter_chart(data, numeric_columns[0], numeric_columns[1]))

    logger.info(
        f"Selected {len(charts)} visualizations "
        f"({len(numeric_columns)} numeric, {len(string_columns)} categorical columns)"
    )
    return charts
