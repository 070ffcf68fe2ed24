from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from ..db.store import RecordStore
from ..excel.normalizer import PREVIEW_ROWS, first_sheet_columns, preview_rows
from ..models.file_record import FileRecord
from ..models.workbook import RowObject
from .storage import FileStorage

"""File record queries and deletion for one owner."""

__all__ = [
    "RecordNotFoundError",
    "FilePage",
    "FileView",
    "load_file",
    "list_files",
    "file_view",
    "delete_file",
]

logger = logging.getLogger(__name__)


class RecordNotFoundError(Exception):
    """Raised when a file or chart does not exist or belongs to another owner."""


@dataclass(frozen=True)
class FilePage:
    files: list[FileRecord]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass(frozen=True)
class FileView:
    """What the axis-selection screen needs: first-sheet columns + preview."""
    record: FileRecord
    columns: list[str]
    preview: list[RowObject]
    sheets: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.record.id,
            "original_name": self.record.original_name,
            "uploaded_at": self.record.uploaded_at.isoformat(),
            "metadata": self.record.metadata(),
            "columns": list(self.columns),
            "preview": [dict(r) for r in self.preview],
            "sheets": list(self.sheets),
        }


def load_file(
    store: RecordStore, owner_id: str, file_id: str, *, processed_only: bool = True
) -> FileRecord:
    record = store.get_file(file_id)
    if record is None or record.owner_id != owner_id or (processed_only and not record.processed):
        raise RecordNotFoundError(f"file not found: {file_id}")
    return record


def list_files(store: RecordStore, owner_id: str, page: int = 1, limit: int = 10) -> FilePage:
    """Processed files of an owner, newest first."""
    page = max(page, 1)
    limit = max(limit, 1)
    files = store.list_files(owner_id, processed_only=True, offset=(page - 1) * limit, limit=limit)
    return FilePage(files=files, page=page, limit=limit, total=store.count_files(owner_id))


def file_view(record: FileRecord, preview_limit: int = PREVIEW_ROWS) -> FileView:
    return FileView(
        record=record,
        columns=first_sheet_columns(record.sheets),
        preview=preview_rows(record.sheets, preview_limit),
        sheets=record.sheet_names,
    )


def delete_file(store: RecordStore, storage: FileStorage, owner_id: str, file_id: str) -> FileRecord:
    """Delete stored bytes, charts and the record itself."""
    record = load_file(store, owner_id, file_id, processed_only=False)
    storage.delete(record.storage_path)
    store.delete_file(record.id)
    logger.info(f"deleted file {record.original_name} ({record.id})")
    return record
