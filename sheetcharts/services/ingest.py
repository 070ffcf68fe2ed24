from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from ..db.store import RecordStore, StoreError
from ..excel.normalizer import catalog_columns
from ..excel.reader import (
    FileTooLargeError,
    InvalidFileTypeError,
    UnreadableFileError,
    check_upload,
    detect_format,
    read_workbook,
)
from ..logging.error_log import FILE_LEVEL, ErrorLogBuffer, ErrorRecord
from ..models.config_models import AppConfig, XLS_MIME_TYPE, XLSX_MIME_TYPE
from ..models.file_record import FileRecord, new_record_id
from ..models.ingest_result import FileStat, IngestResult
from .metrics import EVENT_FILE_UPLOADED, EVENT_UPLOAD_FAILED, MetricsCollector
from .progress import ProgressTracker
from .storage import FileStorage

"""Upload ingestion.

ingest_upload() handles one upload end to end:

1. pre-check MIME type and size (InvalidFileTypeError / FileTooLargeError
   propagate: nothing is stored or persisted)
2. store the raw bytes
3. read the workbook; UnreadableFileError is a data error, so the upload is
   still persisted as a FileRecord with processed=False
4. build the column catalog and persist the FileRecord; when the store
   refuses the record the stored bytes are deleted again

ingest_directory() runs ingest_upload() over every spreadsheet in a
directory for the CLI and aggregates an IngestResult.
"""

__all__ = [
    "IngestError",
    "SPREADSHEET_SUFFIXES",
    "scan_spreadsheet_files",
    "ingest_upload",
    "ingest_directory",
]

logger = logging.getLogger(__name__)

SPREADSHEET_SUFFIXES = {
    ".xlsx": XLSX_MIME_TYPE,
    ".xls": XLS_MIME_TYPE,
}


class IngestError(Exception):
    """Fatal error that prevents a batch ingest from running."""


def ingest_upload(
    store: RecordStore,
    storage: FileStorage,
    *,
    owner_id: str,
    original_name: str,
    data: bytes,
    mime_type: str,
    config: AppConfig | None = None,
    size_bytes: int | None = None,
    error_log: ErrorLogBuffer | None = None,
    metrics: MetricsCollector | None = None,
) -> FileRecord:
    """Validate, store, parse and persist one uploaded spreadsheet.

    Returns:
        The persisted FileRecord (processed=False when the workbook was unreadable)

    Raises:
        InvalidFileTypeError, FileTooLargeError: upload refused by the pre-check
    """
    cfg = config or AppConfig()
    size = len(data) if size_bytes is None else size_bytes
    check_upload(
        mime_type,
        size,
        allowed_mime_types=cfg.allowed_mime_types,
        max_size_bytes=cfg.max_file_size_bytes,
    )

    path = storage.save(original_name, data)
    base = dict(
        id=new_record_id(),
        owner_id=owner_id,
        original_name=original_name,
        size_bytes=size,
        storage_path=str(path),
        mime_type=mime_type,
        uploaded_at=datetime.now(UTC),
    )

    try:
        workbook = read_workbook(
            data,
            detect_format(original_name, mime_type),
            max_rows=cfg.max_rows_per_sheet,
        )
    except UnreadableFileError as e:
        logger.warning(f"could not process {original_name}: {e}")
        if error_log is not None:
            error_log.append(ErrorRecord.create(original_name, FILE_LEVEL, "UNREADABLE_FILE", str(e)))
        record = FileRecord(**base, processed=False, processing_error=str(e))
    else:
        record = FileRecord(
            **base,
            sheets=workbook,
            columns=catalog_columns(workbook),
            total_row_count=sum(sheet.row_count for sheet in workbook.values()),
            processed=True,
        )
        logger.info(
            f"processed {original_name}: sheets={len(workbook)} rows={record.total_row_count}"
        )

    try:
        store.add_file(record)
    except StoreError:
        storage.delete(path)
        raise

    if metrics is not None:
        kind = EVENT_FILE_UPLOADED if record.processed else EVENT_UPLOAD_FAILED
        metrics.record_event(kind, {"file_id": record.id, "owner_id": owner_id})
    return record


def scan_spreadsheet_files(directory: Path) -> list[Path]:
    """Spreadsheet files (.xlsx / .xls) directly inside `directory`, sorted by name.

    Raises:
        IngestError: if the directory does not exist or cannot be read
    """
    if not directory.exists():
        raise IngestError(f"directory not found: {directory}")
    if not directory.is_dir():
        raise IngestError(f"path is not a directory: {directory}")
    try:
        return sorted(
            p for p in directory.iterdir()
            if p.is_file() and p.suffix.lower() in SPREADSHEET_SUFFIXES
        )
    except OSError as e:
        raise IngestError(f"error reading directory {directory}: {e}") from e


def ingest_directory(
    store: RecordStore,
    storage: FileStorage,
    *,
    owner_id: str,
    config: AppConfig,
    directory: Path | None = None,
    error_log: ErrorLogBuffer | None = None,
    metrics: MetricsCollector | None = None,
    discard_on_store_error: bool = False,
) -> IngestResult:
    """Ingest every spreadsheet in a directory (config.source_directory by default).

    With discard_on_store_error the bytes stored earlier in the run are deleted
    when the store fails, for stores whose records roll back with the failure.
    """
    start_time = datetime.now(UTC)
    source = directory if directory is not None else Path(config.source_directory)
    paths = scan_spreadsheet_files(source)

    processed = failed = rejected = total_rows = 0
    file_stats: list[FileStat] = []
    stored_paths: list[str] = []

    with ProgressTracker(len(paths)) as progress:
        for path in paths:
            progress.start_file(path)
            file_start = datetime.now(UTC)
            mime_type = SPREADSHEET_SUFFIXES[path.suffix.lower()]
            record: FileRecord | None = None
            try:
                record = ingest_upload(
                    store,
                    storage,
                    owner_id=owner_id,
                    original_name=path.name,
                    data=path.read_bytes(),
                    mime_type=mime_type,
                    config=config,
                    error_log=error_log,
                    metrics=metrics,
                )
            except StoreError:
                if discard_on_store_error:
                    for stored in stored_paths:
                        storage.delete(stored)
                raise
            except (InvalidFileTypeError, FileTooLargeError) as e:
                rejected += 1
                status, error = "rejected", str(e)
                logger.warning(f"rejected {path.name}: {e}")
                if error_log is not None:
                    error_log.append(
                        ErrorRecord.create(path.name, FILE_LEVEL, "UPLOAD_REJECTED", str(e))
                    )
            else:
                stored_paths.append(record.storage_path)
                error = record.processing_error
                if record.processed:
                    processed += 1
                    total_rows += record.total_row_count
                    status = "processed"
                else:
                    failed += 1
                    status = "failed"
            file_stats.append(
                FileStat(
                    file_name=path.name,
                    status=status,
                    row_count=record.total_row_count if record else 0,
                    elapsed_seconds=(datetime.now(UTC) - file_start).total_seconds(),
                    record_id=record.id if record else None,
                    error=error,
                )
            )
            progress.set_postfix(processed=processed, failed=failed + rejected, rows=total_rows)
            progress.finish_file()

    if error_log is not None:
        log_path = error_log.flush()
        if log_path is not None:
            logger.info(f"error log written: {log_path}")

    end_time = datetime.now(UTC)
    return IngestResult(
        processed_files=processed,
        failed_files=failed,
        rejected_files=rejected,
        total_rows=total_rows,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        file_stats=file_stats,
    )
