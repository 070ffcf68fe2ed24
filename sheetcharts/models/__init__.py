"""Domain models for sheetcharts.

Workbook/sheet grids, file and chart records, chart series shapes, analysis
reports, error records and configuration dataclasses.
"""

from .chart import (
    AnalysisReport,
    CategorySeries,
    ChartRecord,
    ChartRequest,
    ChartSeries,
    ChartType,
    PointSeries,
    ScatterPoint,
    SurfaceSeries,
)
from .config_models import AppConfig, DatabaseConfig
from .file_record import FileRecord
from .workbook import NormalizedTable, RowObject, Sheet, Workbook

__all__ = [
    # Configuration models
    "AppConfig",
    "DatabaseConfig",
    # Workbook models
    "NormalizedTable",
    "RowObject",
    "Sheet",
    "Workbook",
    "FileRecord",
    # Chart models
    "AnalysisReport",
    "CategorySeries",
    "ChartRecord",
    "ChartRequest",
    "ChartSeries",
    "ChartType",
    "PointSeries",
    "ScatterPoint",
    "SurfaceSeries",
]
