from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any

from ..charts.analysis import analyze_series
from ..charts.series import build_series
from ..db.store import RecordStore
from ..excel.normalizer import normalize_sheet
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.chart import AnalysisReport, ChartRecord, ChartRequest, ChartSeries
from ..models.config_models import AppConfig
from ..models.file_record import FileRecord
from ..models.workbook import RowObject
from .files import RecordNotFoundError, load_file
from .metrics import EVENT_CHART_CREATED, EVENT_CHART_SAVED, MetricsCollector

"""Chart generation and canonical chart saving.

generate_chart() loads the row objects of the selected sheet (the first one
by default), builds the series and optionally the analysis report. Series
building and analysis never raise for valid input, so anything escaping them
is a defect: it is logged, written to the error log and re-raised as
ChartGenerationError.

save_chart() upserts the canonical ChartRecord for
(owner, file, chart type, x column, y column).
"""

__all__ = [
    "ChartGenerationError",
    "ChartResult",
    "chart_rows",
    "generate_chart",
    "save_chart",
    "list_charts",
]

logger = logging.getLogger(__name__)


class ChartGenerationError(Exception):
    """Unexpected failure while building a series or its analysis."""


@dataclass(frozen=True)
class ChartResult:
    request: ChartRequest
    series: ChartSeries
    report: AnalysisReport | None = None

    @property
    def title(self) -> str:
        return self.request.title or self.request.default_title

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "chart_type": self.request.chart_type.value,
            "x_column": self.request.x_column,
            "y_column": self.request.y_column,
            "title": self.title,
            "description": self.request.description or "",
            "series": self.series.to_dict(),
        }
        if self.report is not None:
            data["analysis"] = self.report.to_dict()
        return data


def chart_rows(
    record: FileRecord, sheet_name: str | None = None, limit: int | None = None
) -> list[RowObject]:
    """Row objects of one sheet of a file (first sheet by default)."""
    if not record.sheets:
        return []
    if sheet_name is None:
        sheet = next(iter(record.sheets.values()))
    else:
        sheet = record.sheets.get(sheet_name)
        if sheet is None:
            raise RecordNotFoundError(f"sheet not found: {sheet_name}")
    return normalize_sheet(sheet, limit=limit).row_objects


def generate_chart(
    store: RecordStore,
    owner_id: str,
    file_id: str,
    request: ChartRequest,
    *,
    sheet_name: str | None = None,
    analyze: bool = False,
    config: AppConfig | None = None,
    error_log: ErrorLogBuffer | None = None,
    metrics: MetricsCollector | None = None,
    rng: random.Random | None = None,
) -> ChartResult:
    cfg = config or AppConfig()
    record = load_file(store, owner_id, file_id)
    rows = chart_rows(record, sheet_name)
    try:
        series = build_series(
            rows,
            request,
            max_categories=cfg.max_categories,
            max_points=cfg.max_points,
            rng=rng,
        )
        report = analyze_series(series, request) if analyze else None
    except Exception as e:
        logger.exception(f"chart generation failed for {record.original_name}")
        if error_log is not None:
            error_log.append(
                ErrorRecord.create(
                    record.original_name,
                    sheet_name or (record.sheet_names[0] if record.sheets else ""),
                    "CHART_GENERATION_ERROR",
                    f"{type(e).__name__}: {e}",
                )
            )
        raise ChartGenerationError(f"could not generate {request.chart_type.value} chart: {e}") from e

    if metrics is not None:
        metrics.record_event(
            EVENT_CHART_CREATED,
            {"chart_type": request.chart_type.value, "file_id": file_id, "owner_id": owner_id},
        )
    return ChartResult(request=request, series=series, report=report)


def save_chart(
    store: RecordStore,
    owner_id: str,
    file_id: str,
    request: ChartRequest,
    series: ChartSeries | None = None,
    *,
    metrics: MetricsCollector | None = None,
) -> tuple[ChartRecord, bool]:
    """Create or update the canonical chart; returns (record, created)."""
    load_file(store, owner_id, file_id)
    record, created = store.upsert_chart(
        owner_id,
        file_id,
        request.chart_type,
        request.x_column,
        request.y_column,
        title=request.title or request.default_title,
        description=request.description or "",
        series=series.to_dict() if series is not None else None,
    )
    logger.info(f"{'saved' if created else 'updated'} chart {record.title} ({record.id})")
    if metrics is not None:
        metrics.record_event(EVENT_CHART_SAVED, {"chart_type": request.chart_type.value, "created": created})
    return record, created


def list_charts(store: RecordStore, owner_id: str, file_id: str | None = None) -> list[ChartRecord]:
    return store.list_charts(owner_id, file_id)
