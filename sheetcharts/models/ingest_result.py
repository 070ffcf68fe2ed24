from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""Batch ingest result models.

IngestResult aggregates one directory ingest run for the SUMMARY line;
FileStat carries the per-file outcome.
"""


@dataclass(frozen=True)
class FileStat:
    """Per-file ingest outcome."""
    file_name: str
    status: str  # processed / failed / rejected
    row_count: int
    elapsed_seconds: float
    record_id: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class IngestResult:
    """Aggregated results of a batch ingest run."""
    processed_files: int  # parsed and persisted with processed=True
    failed_files: int     # persisted with processed=False
    rejected_files: int   # refused by the pre-check, nothing persisted
    total_rows: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    file_stats: list[FileStat] | None = None

    @property
    def total_files(self) -> int:
        return self.processed_files + self.failed_files + self.rejected_files

    @property
    def has_failures(self) -> bool:
        return (self.failed_files + self.rejected_files) > 0
