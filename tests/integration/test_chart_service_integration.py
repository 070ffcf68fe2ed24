from __future__ import annotations
from datetime import timedelta
from pathlib import Path

import pytest

from sheetcharts.db.store import MemoryStore
from sheetcharts.logging.error_log import ErrorLogBuffer
from sheetcharts.models.chart import ChartRequest, PointSeries
from sheetcharts.models.config_models import XLSX_MIME_TYPE, AppConfig
from sheetcharts.services import admin, files
from sheetcharts.services.charts import (
    ChartGenerationError,
    generate_chart,
    list_charts,
    save_chart,
)
from sheetcharts.services.files import RecordNotFoundError
from sheetcharts.services.ingest import ingest_upload
from sheetcharts.services.metrics import InMemoryMetrics
from sheetcharts.services.storage import FileStorage


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def storage(tmp_path: Path) -> FileStorage:
    return FileStorage(tmp_path / "uploads")


@pytest.fixture()
def upload(store, storage, workbook_bytes):
    def _upload(owner: str = "u1", name: str = "sales.xlsx", data: bytes | None = None):
        if data is None:
            data = workbook_bytes({
                "Sheet1": [["Region", "Sales"], ["East", 10], ["West", 20], ["East", 5]],
                "Scatter": [["Product", "Price", "Units"]] + [[f"P{i}", i, i * 3] for i in range(1, 151)],
            })
        return ingest_upload(
            store, storage, owner_id=owner, original_name=name, data=data, mime_type=XLSX_MIME_TYPE
        )
    return _upload


def test_generate_bar_chart_with_analysis(store, upload):
    record = upload()
    metrics = InMemoryMetrics()
    result = generate_chart(
        store, "u1", record.id, ChartRequest.create("Region", "Sales", "bar"),
        analyze=True, metrics=metrics,
    )
    assert result.series.categories == ["East", "West"]
    assert result.series.values == [15.0, 20.0]
    assert result.report is not None and result.report.sufficient_data
    data = result.to_dict()
    assert data["title"] == "Sales vs Region"
    assert "analysis" in data
    stats = metrics.query_stats(timedelta(hours=1))
    assert stats.charts_created == 1
    assert stats.top_chart_type == "bar"


def test_generate_line_and_pie(store, upload):
    record = upload()
    line = generate_chart(store, "u1", record.id, ChartRequest.create("Region", "Sales", "line"))
    assert line.series.values == [7.5, 20.0]
    assert line.report is None
    pie = generate_chart(store, "u1", record.id, ChartRequest.create("Region", "Sales", "pie"), analyze=True)
    assert "West: 57.1%" in pie.report.key_findings


def test_scatter_on_named_sheet_caps_points(store, upload):
    record = upload()
    result = generate_chart(
        store, "u1", record.id, ChartRequest.create("Price", "Units", "scatter"), sheet_name="Scatter",
    )
    assert isinstance(result.series, PointSeries)
    assert len(result.series.points) == 100
    assert result.series.points[0].label == "P1"
    assert result.series.points[-1].x == 100.0


def test_config_caps_are_applied(store, upload):
    record = upload()
    result = generate_chart(
        store, "u1", record.id, ChartRequest.create("Price", "Units", "scatter"),
        sheet_name="Scatter", config=AppConfig(max_points=10),
    )
    assert len(result.series.points) == 10


def test_unknown_sheet_and_foreign_owner(store, upload):
    record = upload()
    request = ChartRequest.create("Region", "Sales", "bar")
    with pytest.raises(RecordNotFoundError):
        generate_chart(store, "u1", record.id, request, sheet_name="Nope")
    with pytest.raises(RecordNotFoundError):
        generate_chart(store, "someone-else", record.id, request)


def test_unprocessed_file_cannot_be_charted(store, upload):
    record = upload(data=b"not a workbook")
    with pytest.raises(RecordNotFoundError):
        generate_chart(store, "u1", record.id, ChartRequest.create("Region", "Sales", "bar"))


def test_unexpected_failure_is_wrapped(store, upload, monkeypatch, tmp_path):
    record = upload()

    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr("sheetcharts.services.charts.build_series", broken)
    error_log = ErrorLogBuffer(tmp_path / "logs")
    with pytest.raises(ChartGenerationError) as e:
        generate_chart(
            store, "u1", record.id, ChartRequest.create("Region", "Sales", "bar"), error_log=error_log
        )
    assert "boom" in str(e.value)
    assert error_log.records[0].error_type == "CHART_GENERATION_ERROR"
    assert error_log.records[0].sheet == "Sheet1"


def test_save_chart_upserts_canonical_record(store, upload):
    record = upload()
    request = ChartRequest.create("Region", "Sales", "bar")
    result = generate_chart(store, "u1", record.id, request)
    metrics = InMemoryMetrics()

    saved, created = save_chart(store, "u1", record.id, request, result.series, metrics=metrics)
    assert created
    assert saved.title == "Sales vs Region"
    assert saved.series["values"] == [15.0, 20.0]

    renamed = ChartRequest.create("Region", "Sales", "bar", title="Regional sales", description="Q1")
    again, created = save_chart(store, "u1", record.id, renamed)
    assert not created
    assert again.id == saved.id
    assert again.title == "Regional sales"
    assert [c.id for c in list_charts(store, "u1")] == [saved.id]
    assert metrics.query_stats(timedelta(hours=1)).events == 1


def test_file_view_and_listing(store, upload):
    first = upload(name="first.xlsx")
    upload(name="broken.xlsx", data=b"junk")
    second = upload(name="second.xlsx")

    view = files.file_view(first, preview_limit=2)
    assert view.columns == ["Region", "Sales"]
    assert view.preview == [{"Region": "East", "Sales": 10}, {"Region": "West", "Sales": 20}]
    assert view.sheets == ["Sheet1", "Scatter"]
    assert view.to_dict()["metadata"]["columns"] == ["Region", "Sales", "Product", "Price", "Units"]

    page = files.list_files(store, "u1", page=1, limit=1)
    assert page.total == 2
    assert page.pages == 2
    assert [r.id for r in page.files] == [second.id]


def test_delete_file_removes_bytes_and_charts(store, storage, upload):
    record = upload()
    save_chart(store, "u1", record.id, ChartRequest.create("Region", "Sales", "pie"))
    files.delete_file(store, storage, "u1", record.id)
    assert not Path(record.storage_path).exists()
    assert store.get_file(record.id) is None
    assert store.count_charts() == 0
    with pytest.raises(RecordNotFoundError):
        files.load_file(store, "u1", record.id)


def test_admin_stats_and_owner_cleanup(store, storage, upload):
    mine = upload(owner="u1")
    upload(owner="u1", data=b"junk")
    theirs = upload(owner="u2")
    save_chart(store, "u1", mine.id, ChartRequest.create("Region", "Sales", "bar"))
    save_chart(store, "u2", theirs.id, ChartRequest.create("Region", "Sales", "line"))

    stats = admin.platform_stats(store)
    assert stats.total_owners == 2
    assert stats.total_files == 2
    assert stats.failed_files == 1
    assert stats.total_charts == 2
    assert [r.id for r in stats.recent_files][-1] == mine.id

    assert admin.owner_stats(store, "u1") == admin.OwnerStats("u1", total_files=1, total_charts=1)

    assert admin.delete_owner_data(store, storage, "u1") == 2
    assert not Path(mine.storage_path).exists()
    assert Path(theirs.storage_path).exists()
    assert admin.owner_stats(store, "u1").total_files == 0
    assert store.count_charts() == 1


def test_admin_exports():
    assert sorted(admin.__all__) == [
        "OwnerStats", "PlatformStats", "delete_owner_data", "owner_stats", "platform_stats",
    ]
