from __future__ import annotations
import json
from datetime import timedelta
from pathlib import Path

import pytest

from sheetcharts.charts.series import build_series
from sheetcharts.db.store import MemoryStore, StoreError
from sheetcharts.excel.reader import FileTooLargeError, InvalidFileTypeError
from sheetcharts.logging.error_log import ErrorLogBuffer
from sheetcharts.models.chart import ChartRequest
from sheetcharts.models.config_models import XLSX_MIME_TYPE as XLSX_MIME, AppConfig
from sheetcharts.services.charts import chart_rows
from sheetcharts.services.ingest import IngestError, ingest_directory, ingest_upload
from sheetcharts.services.metrics import InMemoryMetrics
from sheetcharts.services.storage import FileStorage


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def storage(tmp_path: Path) -> FileStorage:
    return FileStorage(tmp_path / "uploads")


def test_blank_cell_row_counted_but_excluded_from_chart(store, storage, workbook_bytes):
    data = workbook_bytes({
        "Sheet1": [["Region", "Sales"], ["East", 10], ["West", None], ["East", 5]],
        "Targets": [["Region", "Target"], ["East", 30]],
    })
    record = ingest_upload(
        store, storage, owner_id="u1", original_name="sales.xlsx", data=data, mime_type=XLSX_MIME
    )
    assert record.processed
    assert record.total_row_count == 4
    assert record.columns == ["Region", "Sales", "Target"]
    assert record.sheet_names == ["Sheet1", "Targets"]
    assert Path(record.storage_path).read_bytes() == data
    assert store.get_file(record.id) == record

    series = build_series(chart_rows(record), ChartRequest.create("Region", "Sales", "bar"))
    assert series.categories == ["East"]
    assert series.values == [15.0]


def test_non_spreadsheet_upload_is_persisted_as_failed(store, storage, tmp_path):
    error_log = ErrorLogBuffer(tmp_path / "logs")
    metrics = InMemoryMetrics()
    record = ingest_upload(
        store, storage,
        owner_id="u1", original_name="notes.xlsx", data=b"plain text renamed to xlsx",
        mime_type=XLSX_MIME, error_log=error_log, metrics=metrics,
    )
    assert not record.processed
    assert record.processing_error
    assert record.sheets == {}
    assert store.count_files("u1", processed_only=False) == 1
    assert store.count_files("u1") == 0
    assert [r.error_type for r in error_log.records] == ["UNREADABLE_FILE"]
    stats = metrics.query_stats(timedelta(hours=1))
    assert stats.files_uploaded == 0
    assert stats.events == 1


def test_successful_upload_records_metric(store, storage, region_sales_xlsx):
    metrics = InMemoryMetrics()
    ingest_upload(
        store, storage, owner_id="u1", original_name="a.xlsx",
        data=region_sales_xlsx, mime_type=XLSX_MIME, metrics=metrics,
    )
    assert metrics.query_stats(timedelta(hours=1)).files_uploaded == 1


def test_precheck_rejections_store_nothing(store, storage, region_sales_xlsx):
    with pytest.raises(InvalidFileTypeError):
        ingest_upload(
            store, storage, owner_id="u1", original_name="a.txt",
            data=b"hello", mime_type="text/plain",
        )
    with pytest.raises(FileTooLargeError):
        ingest_upload(
            store, storage, owner_id="u1", original_name="a.xlsx", data=region_sales_xlsx,
            mime_type=XLSX_MIME, config=AppConfig(max_file_size_bytes=10),
        )
    assert store.count_files(processed_only=False) == 0
    assert not storage.directory.exists()


def test_max_rows_per_sheet_marks_file_unprocessed(store, storage, region_sales_xlsx):
    record = ingest_upload(
        store, storage, owner_id="u1", original_name="a.xlsx", data=region_sales_xlsx,
        mime_type=XLSX_MIME, config=AppConfig(max_rows_per_sheet=2),
    )
    assert not record.processed
    assert "limit is 2" in record.processing_error


def test_ingest_directory(temp_workdir: Path, store, region_sales_xlsx):
    data_dir = temp_workdir / "data"
    (data_dir / "good.xlsx").write_bytes(region_sales_xlsx)
    (data_dir / "bad.xlsx").write_bytes(b"not a workbook")
    (data_dir / "readme.txt").write_text("ignored", encoding="utf-8")
    cfg = AppConfig(storage_directory=str(temp_workdir / "uploads"))
    error_log = ErrorLogBuffer(temp_workdir / "logs")

    result = ingest_directory(
        store, FileStorage(cfg.storage_directory), owner_id="cli", config=cfg, error_log=error_log,
    )

    assert (result.processed_files, result.failed_files, result.rejected_files) == (1, 1, 0)
    assert result.total_rows == 3
    assert result.has_failures
    assert [s.file_name for s in result.file_stats] == ["bad.xlsx", "good.xlsx"]
    assert [s.status for s in result.file_stats] == ["failed", "processed"]
    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    entry = json.loads(logs[0].read_text(encoding="utf-8").splitlines()[0])
    assert entry["file"] == "bad.xlsx"
    assert entry["error_type"] == "UNREADABLE_FILE"


def test_ingest_directory_rejects_oversized_files(temp_workdir: Path, store, region_sales_xlsx):
    (temp_workdir / "data" / "big.xlsx").write_bytes(region_sales_xlsx)
    cfg = AppConfig(storage_directory=str(temp_workdir / "uploads"), max_file_size_bytes=10)
    result = ingest_directory(store, FileStorage(cfg.storage_directory), owner_id="cli", config=cfg)
    assert result.rejected_files == 1
    assert result.file_stats[0].status == "rejected"
    assert result.file_stats[0].record_id is None


def test_ingest_directory_missing(temp_workdir: Path, store):
    cfg = AppConfig(source_directory=str(temp_workdir / "nope"))
    with pytest.raises(IngestError):
        ingest_directory(store, FileStorage(temp_workdir / "uploads"), owner_id="cli", config=cfg)


class FailingStore(MemoryStore):
    """Accepts the first `accept` files, then fails like a dropped connection."""

    def __init__(self, accept: int = 0) -> None:
        super().__init__()
        self.accept = accept

    def add_file(self, record):
        if self.accept <= 0:
            raise StoreError("database error: connection lost")
        self.accept -= 1
        return super().add_file(record)


def test_store_failure_removes_stored_bytes(storage, region_sales_xlsx):
    with pytest.raises(StoreError):
        ingest_upload(
            FailingStore(), storage, owner_id="u1", original_name="a.xlsx",
            data=region_sales_xlsx, mime_type=XLSX_MIME,
        )
    assert list(storage.directory.iterdir()) == []


def test_ingest_directory_discards_run_bytes_on_store_failure(temp_workdir: Path, region_sales_xlsx):
    data_dir = temp_workdir / "data"
    (data_dir / "a.xlsx").write_bytes(region_sales_xlsx)
    (data_dir / "b.xlsx").write_bytes(region_sales_xlsx)
    storage = FileStorage(temp_workdir / "uploads")

    with pytest.raises(StoreError):
        ingest_directory(
            FailingStore(accept=1), storage, owner_id="cli", config=AppConfig(),
            directory=data_dir, discard_on_store_error=True,
        )
    assert list(storage.directory.iterdir()) == []


def test_ingest_directory_keeps_committed_bytes_by_default(temp_workdir: Path, region_sales_xlsx):
    data_dir = temp_workdir / "data"
    (data_dir / "a.xlsx").write_bytes(region_sales_xlsx)
    (data_dir / "b.xlsx").write_bytes(region_sales_xlsx)
    storage = FileStorage(temp_workdir / "uploads")
    store = FailingStore(accept=1)

    with pytest.raises(StoreError):
        ingest_directory(store, storage, owner_id="cli", config=AppConfig(), directory=data_dir)
    remaining = list(storage.directory.iterdir())
    assert len(remaining) == 1
    assert [r.storage_path for r in store.list_files("cli")] == [str(remaining[0])]
