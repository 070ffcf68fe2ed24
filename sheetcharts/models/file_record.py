from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .workbook import Sheet

"""FileRecord domain model.

A FileRecord is persisted for every upload that passes the pre-check, whether
or not the workbook could be parsed:

- processed=True: sheets / columns / total_row_count are populated
- processed=False: sheets is empty and processing_error carries the reason

Records are never mutated after creation; they are only deleted (with their
charts) by the owner or together with the owner account.
"""

__all__ = [
    "FileRecord",
    "new_record_id",
]


def new_record_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class FileRecord:
    """Uploaded spreadsheet and its parsed sheets."""
    id: str
    owner_id: str
    original_name: str
    size_bytes: int
    storage_path: str                   # where the raw bytes were stored
    mime_type: str
    uploaded_at: datetime               # UTC
    sheets: dict[str, Sheet] = field(default_factory=dict)
    columns: list[str] = field(default_factory=list)  # union of headers across sheets
    total_row_count: int = 0            # data rows across all sheets, blanks included
    processed: bool = False
    processing_error: str | None = None

    @property
    def sheet_names(self) -> list[str]:
        return list(self.sheets.keys())

    def metadata(self) -> dict[str, Any]:
        """Listing metadata (no row data)."""
        return {
            "sheets": self.sheet_names,
            "columns": list(self.columns),
            "row_count": self.total_row_count,
            "sheet_data": {
                name: {"row_count": sheet.row_count, "headers": list(sheet.header_row)}
                for name, sheet in self.sheets.items()
            },
        }

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "original_name": self.original_name,
            "size_bytes": self.size_bytes,
            "uploaded_at": self.uploaded_at.isoformat(),
            "processed": self.processed,
            "processing_error": self.processing_error,
            "metadata": self.metadata(),
        }
