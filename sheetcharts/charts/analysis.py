from __future__ import annotations

import math
import statistics
from dataclasses import dataclass

from ..models.chart import (
    AnalysisReport,
    CategorySeries,
    ChartRequest,
    ChartSeries,
    ChartType,
    PointSeries,
    SurfaceSeries,
)

"""Descriptive analyzer: ChartSeries -> templated narrative report.

Plain arithmetic over the built series (totals, means, extremes, half-split
trend, shares, Pearson correlation) rendered into fixed sentence templates.
Never raises for a well-formed series: with no numeric values to work on it
returns the canned insufficient-data report.
"""

__all__ = [
    "DOMINANT_FACTOR",
    "UNDERPERFORMING_FACTOR",
    "MOMENTUM_THRESHOLD_PCT",
    "PIE_DOMINANT_SHARE_PCT",
    "DATA_QUALITY_THRESHOLD",
    "SeriesStats",
    "describe",
    "pearson",
    "correlation_strength",
    "insufficient_data_report",
    "analyze_series",
]

DOMINANT_FACTOR = 2.0
UNDERPERFORMING_FACTOR = 0.5
MOMENTUM_THRESHOLD_PCT = 20.0
HIGH_VOLATILITY_PCT = 50.0
PIE_DOMINANT_SHARE_PCT = 50.0
PIE_BALANCED_BAND_PCT = (10.0, 30.0)
PIE_BALANCED_MIN_CATEGORIES = 3
STRONG_CORRELATION = 0.7
MODERATE_CORRELATION = 0.4
DATA_QUALITY_THRESHOLD = 0.8

# summary, insights, recommendations, extra key findings
_Narrative = tuple[str, list[str], list[str], list[str]]


@dataclass(frozen=True)
class SeriesStats:
    count: int
    total: float
    mean: float
    maximum: float
    max_label: str
    minimum: float
    min_label: str

    @property
    def spread(self) -> float:
        return self.maximum - self.minimum


def _fmt(value: float) -> str:
    if math.isfinite(value) and value.is_integer() and abs(value) < 1e15:
        return f"{int(value):,}"
    return f"{value:,.2f}"


def _pct(value: float) -> str:
    return f"{value:.1f}%"


def describe(measurements: list[tuple[str, float]]) -> SeriesStats:
    """Total / mean / extremes over (label, value) pairs; first extreme wins ties."""
    values = [v for _, v in measurements]
    max_label, maximum = measurements[0]
    min_label, minimum = measurements[0]
    for label, value in measurements[1:]:
        if value > maximum:
            max_label, maximum = label, value
        if value < minimum:
            min_label, minimum = label, value
    total = sum(values)
    return SeriesStats(
        count=len(values),
        total=total,
        mean=total / len(values),
        maximum=maximum,
        max_label=max_label,
        minimum=minimum,
        min_label=min_label,
    )


def pearson(xs: list[float], ys: list[float]) -> float:
    """Pearson r, 0.0 when undefined (fewer than 2 points or a constant axis)."""
    if len(xs) < 2 or len(xs) != len(ys):
        return 0.0
    try:
        return statistics.correlation(xs, ys)
    except statistics.StatisticsError:
        return 0.0


def correlation_strength(r: float) -> str:
    if abs(r) > STRONG_CORRELATION:
        return "strong"
    if abs(r) > MODERATE_CORRELATION:
        return "moderate"
    return "weak"


def _measurements(series: ChartSeries) -> list[tuple[str, float]]:
    if isinstance(series, CategorySeries):
        return list(zip(series.categories, series.values))
    if isinstance(series, PointSeries):
        return [(p.label, p.y) for p in series.points]
    cells: list[tuple[str, float]] = []
    for i, line in enumerate(series.grid, start=1):
        for j, value in enumerate(line, start=1):
            cells.append((f"row {i}, column {j}", value))
    return cells


def insufficient_data_report(request: ChartRequest) -> AnalysisReport:
    return AnalysisReport(
        summary=(
            f"Not enough numeric data in '{request.y_column}' to analyze "
            f"against '{request.x_column}'."
        ),
        insights=["No rows had usable values for both selected columns."],
        recommendations=[
            "Pick a numeric column for the Y axis or check the sheet for blank cells.",
        ],
        key_findings=["Data points analyzed: 0"],
        sufficient_data=False,
    )


def _common_findings(stats: SeriesStats, request: ChartRequest) -> list[str]:
    return [
        f"Total {request.y_column}: {_fmt(stats.total)}",
        f"Average: {_fmt(stats.mean)}",
        f"Highest: {stats.max_label} ({_fmt(stats.maximum)})",
        f"Lowest: {stats.min_label} ({_fmt(stats.minimum)})",
        f"Range: {_fmt(stats.spread)}",
    ]


def _analyze_bar(series: CategorySeries, stats: SeriesStats, request: ChartRequest) -> _Narrative:
    x, y = request.x_column, request.y_column
    pairs = list(zip(series.categories, series.values))
    dominant = [c for c, v in pairs if v > DOMINANT_FACTOR * stats.mean]
    under = [c for c, v in pairs if v < UNDERPERFORMING_FACTOR * stats.mean]
    above = sum(1 for _, v in pairs if v > stats.mean)
    above_pct = above / stats.count * 100

    summary = (
        f"{y} by {x} across {stats.count} categories totals {_fmt(stats.total)}, "
        f"led by {stats.max_label} at {_fmt(stats.maximum)}."
    )
    insights = [
        f"{above} of {stats.count} categories ({_pct(above_pct)}) are above the average of {_fmt(stats.mean)}.",
    ]
    recommendations: list[str] = []
    if dominant:
        insights.append(f"Dominant categories (more than twice the average): {', '.join(dominant)}.")
        recommendations.append(
            f"Study what drives {dominant[0]} and apply it to other {x} values."
        )
    if under:
        insights.append(f"Underperforming categories (below half the average): {', '.join(under)}.")
        recommendations.append(f"Review {', '.join(under)} for improvement opportunities.")
    if not dominant and not under:
        insights.append(f"{y} is spread fairly evenly across {x}.")
        recommendations.append("Keep monitoring for categories that start to pull away from the average.")
    return summary, insights, recommendations, []


def _analyze_line(series: CategorySeries, stats: SeriesStats, request: ChartRequest) -> _Narrative:
    x, y = request.x_column, request.y_column
    values = series.values
    insights: list[str] = []
    recommendations: list[str] = []
    findings: list[str] = []

    if len(values) < 2:
        summary = f"{y} over {x} has a single point ({_fmt(values[0])}); no trend can be derived."
        insights.append("At least two categories are needed to measure a trend.")
        recommendations.append(f"Add more {x} values to track {y} over time.")
        return summary, insights, recommendations, findings

    mid = len(values) // 2
    first_mean = statistics.fmean(values[:mid])
    second_mean = statistics.fmean(values[mid:])
    if first_mean != 0:
        change = (second_mean - first_mean) / abs(first_mean) * 100
    else:
        change = 0.0
    if second_mean > first_mean:
        direction = "upward"
    elif second_mean < first_mean:
        direction = "downward"
    else:
        direction = "flat"

    volatility = statistics.pstdev(values) / abs(stats.mean) * 100 if stats.mean != 0 else 0.0

    summary = (
        f"{y} over {x} shows a {direction} trend: the second half averages "
        f"{_fmt(second_mean)} against {_fmt(first_mean)} in the first half ({change:+.1f}%)."
    )
    findings.append(f"Trend: {direction} ({change:+.1f}%)")
    findings.append(f"Volatility: {_pct(volatility)}")
    if abs(change) > MOMENTUM_THRESHOLD_PCT:
        insights.append(f"Strong momentum: {y} moved {abs(change):.1f}% between halves.")
        if direction == "upward":
            recommendations.append("Capitalize on the growth while the momentum lasts.")
        else:
            recommendations.append(f"Investigate the causes behind the decline in {y}.")
    else:
        insights.append(f"{y} is relatively stable between the first and second half.")
        recommendations.append("Look for levers that could push the trend further.")
    if volatility > HIGH_VOLATILITY_PCT:
        insights.append(f"High volatility ({_pct(volatility)}) relative to the average.")
        recommendations.append("Smooth the series or widen the window before drawing conclusions.")
    insights.append(f"Peak at {stats.max_label} ({_fmt(stats.maximum)}), low at {stats.min_label} ({_fmt(stats.minimum)}).")
    return summary, insights, recommendations, findings


def _analyze_pie(series: CategorySeries, stats: SeriesStats, request: ChartRequest) -> _Narrative:
    x, y = request.x_column, request.y_column
    pairs = list(zip(series.categories, series.values))
    if stats.total != 0:
        shares = [(c, v / stats.total * 100) for c, v in pairs]
    else:
        shares = [(c, 0.0) for c, _ in pairs]
    low, high = PIE_BALANCED_BAND_PCT
    balanced = [c for c, s in shares if low <= s <= high]
    top_label, top_share = max(shares, key=lambda cs: cs[1])

    summary = f"{y} is split across {stats.count} {x} values; {top_label} holds the largest share ({_pct(top_share)})."
    findings = [f"{c}: {_pct(s)}" for c, s in shares]
    insights: list[str] = []
    recommendations: list[str] = []
    if top_share > PIE_DOMINANT_SHARE_PCT:
        insights.append(f"Dominant category: {top_label} accounts for {_pct(top_share)} of the total.")
        recommendations.append(f"Reduce dependence on {top_label} by growing the other segments.")
    if len(balanced) >= PIE_BALANCED_MIN_CATEGORIES:
        insights.append(
            f"Balanced distribution: {len(balanced)} categories each hold between "
            f"{low:.0f}% and {high:.0f}% of the total."
        )
        recommendations.append("The mix is diversified; maintain it.")
    if not insights:
        insights.append(f"No single {x} value dominates and the shares are uneven.")
        recommendations.append("Compare the smaller segments to find growth candidates.")
    return summary, insights, recommendations, findings


def _analyze_scatter(series: PointSeries, stats: SeriesStats, request: ChartRequest) -> _Narrative:
    x, y = request.x_column, request.y_column
    xs = [p.x for p in series.points]
    ys = [p.y for p in series.points]
    r = pearson(xs, ys)
    strength = correlation_strength(r)
    if r > 0:
        direction = "positive"
    elif r < 0:
        direction = "negative"
    else:
        direction = "no"

    summary = (
        f"{len(series.points)} points show a {strength} {direction} correlation "
        f"between {x} and {y} (r = {r:.2f})."
    )
    findings = [f"Correlation coefficient: {r:.3f}", f"Strength: {strength}"]
    insights = [f"As {x} increases, {y} tends to {'increase' if r > 0 else 'decrease' if r < 0 else 'stay unrelated'}."]
    recommendations: list[str] = []
    if strength == "strong":
        recommendations.append(f"{x} is a good predictor of {y}; consider modelling the relationship.")
    elif strength == "moderate":
        recommendations.append(f"Look for additional factors that influence {y} besides {x}.")
    else:
        recommendations.append(f"{x} alone does not explain {y}; explore other columns.")
    insights.append(f"Highest {y}: {stats.max_label} ({_fmt(stats.maximum)}).")
    return summary, insights, recommendations, findings


def _analyze_surface(series: SurfaceSeries, stats: SeriesStats, request: ChartRequest) -> _Narrative:
    size = series.size
    summary = (
        f"{request.y_column} rendered as a {size}x{size} surface; elevation ranges "
        f"from {_fmt(stats.minimum)} to {_fmt(stats.maximum)}."
    )
    findings = [
        f"Peak elevation: {_fmt(stats.maximum)} at {stats.max_label}",
        f"Lowest elevation: {_fmt(stats.minimum)} at {stats.min_label}",
    ]
    insights = [f"Elevation span of {_fmt(stats.spread)} across the grid."]
    recommendations = ["Rotate the surface to compare peaks and valleys from different angles."]
    return summary, insights, recommendations, findings


def _data_quality(series: ChartSeries, request: ChartRequest) -> tuple[str, str] | None:
    if series.source_row_count == 0:
        return None
    ratio = series.numeric_row_count / series.source_row_count
    if ratio >= DATA_QUALITY_THRESHOLD:
        return None
    return (
        f"Data quality: only {series.numeric_row_count} of {series.source_row_count} rows "
        f"({_pct(ratio * 100)}) had usable numeric values.",
        f"Clean blank or non-numeric cells in '{request.x_column}' and '{request.y_column}' "
        "to improve accuracy.",
    )


def _all_finite(series: ChartSeries, measurements: list[tuple[str, float]]) -> bool:
    values = [v for _, v in measurements]
    if isinstance(series, PointSeries):
        values.extend(p.x for p in series.points)
    return all(math.isfinite(v) for v in values)


def analyze_series(series: ChartSeries, request: ChartRequest) -> AnalysisReport:
    """Build the narrative report for a series built from `request`."""
    measurements = _measurements(series)
    if not measurements or series.numeric_row_count == 0:
        return insufficient_data_report(request)
    # overflowed sums or hand-built series; statistics cannot work on inf/nan
    if not _all_finite(series, measurements):
        return insufficient_data_report(request)

    stats = describe(measurements)
    narrative: _Narrative
    if isinstance(series, PointSeries):
        narrative = _analyze_scatter(series, stats, request)
    elif isinstance(series, SurfaceSeries):
        narrative = _analyze_surface(series, stats, request)
    elif series.chart_type is ChartType.LINE:
        narrative = _analyze_line(series, stats, request)
    elif series.chart_type is ChartType.PIE:
        narrative = _analyze_pie(series, stats, request)
    else:
        narrative = _analyze_bar(series, stats, request)
    summary, insights, recommendations, extra = narrative

    findings = [f"Data points analyzed: {stats.count}"] + _common_findings(stats, request) + extra
    quality = _data_quality(series, request)
    if quality is not None:
        insights.append(quality[0])
        recommendations.append(quality[1])
    return AnalysisReport(
        summary=summary,
        insights=insights,
        recommendations=recommendations,
        key_findings=findings,
    )
