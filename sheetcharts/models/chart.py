from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union

from .workbook import RowObject

"""Chart domain models: request, series shapes, persisted record, report.

Series shapes are generic so that any chart renderer can consume them:

- CategorySeries: categories + parallel values (bar, line, pie, bar3d)
- PointSeries: point cloud with per-point label and source row (scatter, scatter3d)
- SurfaceSeries: N x N elevation grid (surface3d)
"""

__all__ = [
    "ChartType",
    "ChartRequest",
    "CategorySeries",
    "ScatterPoint",
    "PointSeries",
    "SurfaceSeries",
    "ChartSeries",
    "ChartRecord",
    "AnalysisReport",
]


class ChartType(Enum):
    BAR = "bar"
    LINE = "line"
    PIE = "pie"
    SCATTER = "scatter"
    BAR3D = "bar3d"
    SCATTER3D = "scatter3d"
    SURFACE3D = "surface3d"

    @classmethod
    def parse(cls, value: str | ChartType) -> ChartType:
        if isinstance(value, ChartType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(t.value for t in cls)
            raise ValueError(f"unknown chart type '{value}' (expected one of: {allowed})") from None

    @property
    def is_categorical(self) -> bool:
        return self in (ChartType.BAR, ChartType.LINE, ChartType.PIE, ChartType.BAR3D)

    @property
    def is_point_cloud(self) -> bool:
        return self in (ChartType.SCATTER, ChartType.SCATTER3D)


@dataclass(frozen=True)
class ChartRequest:
    x_column: str
    y_column: str
    chart_type: ChartType
    title: str | None = None
    description: str | None = None

    @staticmethod
    def create(
        x_column: str,
        y_column: str,
        chart_type: str | ChartType,
        title: str | None = None,
        description: str | None = None,
    ) -> ChartRequest:
        return ChartRequest(
            x_column=x_column,
            y_column=y_column,
            chart_type=ChartType.parse(chart_type),
            title=title,
            description=description,
        )

    @property
    def default_title(self) -> str:
        return f"{self.y_column} vs {self.x_column}"


@dataclass(frozen=True)
class CategorySeries:
    chart_type: ChartType
    categories: list[str]
    values: list[float]
    source_row_count: int = 0    # rows handed to the builder
    eligible_row_count: int = 0  # rows with both X and Y present
    numeric_row_count: int = 0   # eligible rows whose Y parsed as a number

    @property
    def is_empty(self) -> bool:
        return not self.categories

    def to_dict(self) -> dict[str, Any]:
        return {
            "chart_type": self.chart_type.value,
            "categories": list(self.categories),
            "values": list(self.values),
            "source_row_count": self.source_row_count,
            "eligible_row_count": self.eligible_row_count,
            "numeric_row_count": self.numeric_row_count,
        }


@dataclass(frozen=True)
class ScatterPoint:
    x: float
    y: float
    z: float | None  # scatter3d only
    label: str
    row: RowObject   # full source row for tooltip / detail display

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"x": self.x, "y": self.y, "label": self.label, "row": dict(self.row)}
        if self.z is not None:
            data["z"] = self.z
        return data


@dataclass(frozen=True)
class PointSeries:
    chart_type: ChartType
    points: list[ScatterPoint]
    source_row_count: int = 0
    eligible_row_count: int = 0
    numeric_row_count: int = 0   # eligible rows whose X and Y both parsed

    @property
    def is_empty(self) -> bool:
        return not self.points

    def to_dict(self) -> dict[str, Any]:
        return {
            "chart_type": self.chart_type.value,
            "points": [p.to_dict() for p in self.points],
            "source_row_count": self.source_row_count,
            "eligible_row_count": self.eligible_row_count,
            "numeric_row_count": self.numeric_row_count,
        }


@dataclass(frozen=True)
class SurfaceSeries:
    chart_type: ChartType
    grid: list[list[float]]  # row-major N x N
    source_row_count: int = 0
    eligible_row_count: int = 0
    numeric_row_count: int = 0

    @property
    def size(self) -> int:
        return len(self.grid)

    @property
    def is_empty(self) -> bool:
        return not self.grid

    def to_dict(self) -> dict[str, Any]:
        return {
            "chart_type": self.chart_type.value,
            "grid": [list(r) for r in self.grid],
            "source_row_count": self.source_row_count,
            "eligible_row_count": self.eligible_row_count,
            "numeric_row_count": self.numeric_row_count,
        }


ChartSeries = Union[CategorySeries, PointSeries, SurfaceSeries]


@dataclass(frozen=True)
class ChartRecord:
    """Canonical saved chart for (owner, file, type, x, y)."""
    id: str
    owner_id: str
    file_id: str
    chart_type: ChartType
    x_column: str
    y_column: str
    title: str
    description: str
    created_at: datetime
    updated_at: datetime
    series: dict[str, Any] | None = None  # cached ChartSeries.to_dict() snapshot

    @property
    def key(self) -> tuple[str, str, str, str, str]:
        return (self.owner_id, self.file_id, self.chart_type.value, self.x_column, self.y_column)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "file_id": self.file_id,
            "chart_type": self.chart_type.value,
            "x_column": self.x_column,
            "y_column": self.y_column,
            "title": self.title,
            "description": self.description,
            "series": self.series,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class AnalysisReport:
    summary: str
    insights: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    key_findings: list[str] = field(default_factory=list)
    sufficient_data: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "insights": list(self.insights),
            "recommendations": list(self.recommendations),
            "key_findings": list(self.key_findings),
        }
