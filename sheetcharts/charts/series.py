from __future__ import annotations

import logging
import math
import random
import statistics
from collections.abc import Callable, Sequence
from typing import Any

from ..models.chart import (
    CategorySeries,
    ChartRequest,
    ChartSeries,
    ChartType,
    PointSeries,
    ScatterPoint,
    SurfaceSeries,
)
from ..models.workbook import RowObject
from ..excel.values import coerce_number, is_present, parse_number, text_label

"""Series builder: row objects + ChartRequest -> ChartSeries.

Per chart type:

- bar, bar3d: group by the string value of X, sum Y
- line: group by the string value of X, mean of Y
- pie: group by the string value of X, sum Y
- scatter, scatter3d: one point per eligible row (first MAX_POINTS)
- surface3d: Y values laid out row-major in a ceil(sqrt(n)) square grid

Grouped types keep categories in first-appearance order and stop at
MAX_CATEGORIES; rows of later categories are dropped, not merged.
Zero eligible rows always yields an empty series of the right shape.
"""

__all__ = [
    "MAX_CATEGORIES",
    "MAX_POINTS",
    "LABEL_COLUMNS",
    "eligible_rows",
    "point_label",
    "build_series",
]

logger = logging.getLogger(__name__)

MAX_CATEGORIES = 20
MAX_POINTS = 100

# column names that make a good per-point label, matched exactly
LABEL_COLUMNS = ("name", "title", "product", "item", "category", "label")

# upper bound (exclusive) of the scatter3d depth fallback
Z_FALLBACK_RANGE = 10.0


def eligible_rows(rows: Sequence[RowObject], x_column: str, y_column: str) -> list[RowObject]:
    """Rows whose X and Y fields are both present and non-empty."""
    return [
        row for row in rows
        if is_present(row.get(x_column)) and is_present(row.get(y_column))
    ]


def _group_by_label(
    rows: list[RowObject],
    x_column: str,
    y_column: str,
    max_categories: int,
) -> dict[str, list[float]]:
    groups: dict[str, list[float]] = {}
    for row in rows:
        key = text_label(row[x_column])
        bucket = groups.get(key)
        if bucket is None:
            if len(groups) >= max_categories:
                continue
            bucket = groups[key] = []
        bucket.append(coerce_number(row[y_column]))
    return groups


def _build_categories(
    chart_type: ChartType,
    rows: list[RowObject],
    request: ChartRequest,
    max_categories: int,
) -> tuple[list[str], list[float]]:
    groups = _group_by_label(rows, request.x_column, request.y_column, max_categories)
    aggregate: Callable[[list[float]], float]
    if chart_type is ChartType.LINE:
        aggregate = statistics.fmean
    else:
        aggregate = sum
    categories = list(groups.keys())
    values = [float(aggregate(bucket)) for bucket in groups.values()]
    return categories, values


def point_label(row: RowObject, x_column: str, y_column: str, position: int) -> str:
    """Human readable label for a scatter point.

    Preference: a name-like column holding a string, then the first other
    string-valued column, then "Row {position}" (1-based among eligible rows).
    """
    for column, value in row.items():
        if column in LABEL_COLUMNS and isinstance(value, str) and value.strip():
            return value
    for column, value in row.items():
        if column in (x_column, y_column):
            continue
        if isinstance(value, str) and value.strip():
            return value
    return f"Row {position}"


def _depth(row: RowObject, x_column: str, y_column: str, rng: random.Random) -> float:
    for column, value in row.items():
        if column in (x_column, y_column):
            continue
        number = parse_number(value)
        if number is not None:
            return number
    return rng.random() * Z_FALLBACK_RANGE


def _build_points(
    chart_type: ChartType,
    rows: list[RowObject],
    request: ChartRequest,
    max_points: int,
    rng: random.Random,
) -> list[ScatterPoint]:
    x_col, y_col = request.x_column, request.y_column
    points: list[ScatterPoint] = []
    for position, row in enumerate(rows[:max_points], start=1):
        z = _depth(row, x_col, y_col, rng) if chart_type is ChartType.SCATTER3D else None
        points.append(
            ScatterPoint(
                x=coerce_number(row[x_col]),
                y=coerce_number(row[y_col]),
                z=z,
                label=point_label(row, x_col, y_col, position),
                row=dict(row),
            )
        )
    return points


def _build_grid(rows: list[RowObject], y_column: str) -> list[list[float]]:
    values = [coerce_number(row[y_column]) for row in rows]
    if not values:
        return []
    size = math.isqrt(len(values))
    if size * size < len(values):
        size += 1
    grid: list[list[float]] = []
    for i in range(size):
        start = i * size
        line = values[start:start + size]
        line.extend([0.0] * (size - len(line)))
        grid.append(line)
    return grid


def build_series(
    rows: Sequence[RowObject],
    request: ChartRequest,
    *,
    max_categories: int = MAX_CATEGORIES,
    max_points: int = MAX_POINTS,
    rng: random.Random | None = None,
) -> ChartSeries:
    """Shape row objects into the series for request.chart_type.

    Pure apart from the scatter3d depth fallback, which draws from `rng`
    (a fresh random.Random when not given) only for rows with no other
    numeric column.
    """
    chart_type = request.chart_type
    x_col, y_col = request.x_column, request.y_column
    eligible = eligible_rows(rows, x_col, y_col)
    counts: dict[str, Any] = {
        "source_row_count": len(rows),
        "eligible_row_count": len(eligible),
    }

    if chart_type.is_point_cloud:
        numeric = sum(
            1 for r in eligible
            if parse_number(r[x_col]) is not None and parse_number(r[y_col]) is not None
        )
        points = _build_points(chart_type, eligible, request, max_points, rng or random.Random())
        logger.debug("built %s series: %d points from %d rows", chart_type.value, len(points), len(rows))
        return PointSeries(chart_type=chart_type, points=points, numeric_row_count=numeric, **counts)

    numeric = sum(1 for r in eligible if parse_number(r[y_col]) is not None)

    if chart_type is ChartType.SURFACE3D:
        grid = _build_grid(eligible, y_col)
        logger.debug("built surface3d series: %dx%d grid from %d rows", len(grid), len(grid), len(rows))
        return SurfaceSeries(chart_type=chart_type, grid=grid, numeric_row_count=numeric, **counts)

    categories, values = _build_categories(chart_type, eligible, request, max_categories)
    logger.debug(
        "built %s series: %d categories from %d rows", chart_type.value, len(categories), len(rows)
    )
    return CategorySeries(
        chart_type=chart_type,
        categories=categories,
        values=values,
        numeric_row_count=numeric,
        **counts,
    )
