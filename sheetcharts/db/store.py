from __future__ import annotations

import dataclasses
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any, Protocol

import psycopg2
from psycopg2.extras import Json

from ..models.chart import ChartRecord, ChartType
from ..models.file_record import FileRecord, new_record_id
from ..models.workbook import Sheet

"""Record store for FileRecords and ChartRecords.

Two implementations of the RecordStore protocol:

- MemoryStore: process-local dicts (CLI default, tests)
- PostgresStore: psycopg2 cursor, JSONB payloads, ON CONFLICT upsert

Canonical charts: at most one ChartRecord per
(owner_id, file_id, chart_type, x_column, y_column). upsert_chart updates
title / description / series / updated_at of the existing record in place
(last write wins). Deleting a file deletes its charts; deleting an owner's
data deletes all their files and charts.
"""

__all__ = [
    "StoreError",
    "RecordStore",
    "MemoryStore",
    "PostgresStore",
    "SCHEMA_SQL",
]


class StoreError(Exception):
    """Raised when the backing store fails."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RecordStore(Protocol):
    def add_file(self, record: FileRecord) -> FileRecord: ...

    def get_file(self, file_id: str) -> FileRecord | None: ...

    def list_files(
        self, owner_id: str, *, processed_only: bool = True, offset: int = 0, limit: int = 10
    ) -> list[FileRecord]: ...

    def count_files(self, owner_id: str | None = None, *, processed_only: bool = True) -> int: ...

    def recent_files(self, limit: int = 10) -> list[FileRecord]: ...

    def delete_file(self, file_id: str) -> bool: ...

    def upsert_chart(
        self,
        owner_id: str,
        file_id: str,
        chart_type: ChartType,
        x_column: str,
        y_column: str,
        title: str,
        description: str,
        series: dict[str, Any] | None = None,
    ) -> tuple[ChartRecord, bool]: ...

    def get_chart(self, chart_id: str) -> ChartRecord | None: ...

    def list_charts(self, owner_id: str, file_id: str | None = None) -> list[ChartRecord]: ...

    def count_charts(self, owner_id: str | None = None) -> int: ...

    def delete_owner_data(self, owner_id: str) -> list[FileRecord]: ...

    def owner_ids(self) -> list[str]: ...


class MemoryStore:
    """In-process RecordStore. Not thread safe; one store per process/test."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._files: dict[str, FileRecord] = {}
        self._charts: dict[str, ChartRecord] = {}
        self._clock = clock

    # files -------------------------------------------------------------
    def add_file(self, record: FileRecord) -> FileRecord:
        if record.id in self._files:
            raise StoreError(f"file record already exists: {record.id}")
        self._files[record.id] = record
        return record

    def get_file(self, file_id: str) -> FileRecord | None:
        return self._files.get(file_id)

    def _newest_first(self, records: Sequence[FileRecord]) -> list[FileRecord]:
        # reversed() first so that equal timestamps keep newest-inserted first
        return sorted(reversed(list(records)), key=lambda r: r.uploaded_at, reverse=True)

    def list_files(
        self, owner_id: str, *, processed_only: bool = True, offset: int = 0, limit: int = 10
    ) -> list[FileRecord]:
        matches = [
            r for r in self._files.values()
            if r.owner_id == owner_id and (r.processed or not processed_only)
        ]
        return self._newest_first(matches)[offset:offset + limit]

    def count_files(self, owner_id: str | None = None, *, processed_only: bool = True) -> int:
        return sum(
            1 for r in self._files.values()
            if (owner_id is None or r.owner_id == owner_id) and (r.processed or not processed_only)
        )

    def recent_files(self, limit: int = 10) -> list[FileRecord]:
        return self._newest_first([r for r in self._files.values() if r.processed])[:limit]

    def delete_file(self, file_id: str) -> bool:
        if self._files.pop(file_id, None) is None:
            return False
        for chart_id in [c.id for c in self._charts.values() if c.file_id == file_id]:
            del self._charts[chart_id]
        return True

    # charts ------------------------------------------------------------
    def upsert_chart(
        self,
        owner_id: str,
        file_id: str,
        chart_type: ChartType,
        x_column: str,
        y_column: str,
        title: str,
        description: str,
        series: dict[str, Any] | None = None,
    ) -> tuple[ChartRecord, bool]:
        if file_id not in self._files:
            raise StoreError(f"unknown file: {file_id}")
        now = self._clock()
        key = (owner_id, file_id, chart_type.value, x_column, y_column)
        for existing in self._charts.values():
            if existing.key == key:
                updated = dataclasses.replace(
                    existing, title=title, description=description, series=series, updated_at=now
                )
                self._charts[existing.id] = updated
                return updated, False
        record = ChartRecord(
            id=new_record_id(),
            owner_id=owner_id,
            file_id=file_id,
            chart_type=chart_type,
            x_column=x_column,
            y_column=y_column,
            title=title,
            description=description,
            series=series,
            created_at=now,
            updated_at=now,
        )
        self._charts[record.id] = record
        return record, True

    def get_chart(self, chart_id: str) -> ChartRecord | None:
        return self._charts.get(chart_id)

    def list_charts(self, owner_id: str, file_id: str | None = None) -> list[ChartRecord]:
        matches = [
            c for c in reversed(list(self._charts.values()))
            if c.owner_id == owner_id and (file_id is None or c.file_id == file_id)
        ]
        return sorted(matches, key=lambda c: c.created_at, reverse=True)

    def count_charts(self, owner_id: str | None = None) -> int:
        return sum(1 for c in self._charts.values() if owner_id is None or c.owner_id == owner_id)

    # owners ------------------------------------------------------------
    def delete_owner_data(self, owner_id: str) -> list[FileRecord]:
        removed = [r for r in self._files.values() if r.owner_id == owner_id]
        for record in removed:
            self.delete_file(record.id)
        for chart_id in [c.id for c in self._charts.values() if c.owner_id == owner_id]:
            del self._charts[chart_id]
        return removed

    def owner_ids(self) -> list[str]:
        owners: list[str] = []
        for record in self._files.values():
            if record.owner_id not in owners:
                owners.append(record.owner_id)
        return owners


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS sheet_files (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    original_name TEXT NOT NULL,
    size_bytes BIGINT NOT NULL,
    storage_path TEXT NOT NULL,
    mime_type TEXT NOT NULL,
    uploaded_at TIMESTAMPTZ NOT NULL,
    sheets JSONB NOT NULL DEFAULT '[]'::jsonb,
    columns JSONB NOT NULL DEFAULT '[]'::jsonb,
    total_row_count INTEGER NOT NULL DEFAULT 0,
    processed BOOLEAN NOT NULL DEFAULT FALSE,
    processing_error TEXT
);
CREATE INDEX IF NOT EXISTS sheet_files_owner_uploaded_idx ON sheet_files (owner_id, uploaded_at DESC);
CREATE TABLE IF NOT EXISTS sheet_charts (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    file_id TEXT NOT NULL REFERENCES sheet_files (id) ON DELETE CASCADE,
    chart_type TEXT NOT NULL,
    x_column TEXT NOT NULL,
    y_column TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    series JSONB,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL,
    UNIQUE (owner_id, file_id, chart_type, x_column, y_column)
);
"""

_FILE_COLUMNS = (
    "id, owner_id, original_name, size_bytes, storage_path, mime_type, uploaded_at, "
    "sheets, columns, total_row_count, processed, processing_error"
)
_CHART_COLUMNS = (
    "id, owner_id, file_id, chart_type, x_column, y_column, title, description, "
    "series, created_at, updated_at"
)


# JSONB objects do not keep key order, so sheets are stored as an array
def _sheets_to_json(sheets: dict[str, Sheet]) -> list[dict[str, Any]]:
    return [{"name": name, **sheet.to_dict()} for name, sheet in sheets.items()]


def _sheets_from_json(raw: list[dict[str, Any]] | None) -> dict[str, Sheet]:
    return {entry["name"]: Sheet.from_dict(entry["name"], entry) for entry in raw or []}


def _file_from_row(row: Sequence[Any]) -> FileRecord:
    return FileRecord(
        id=row[0],
        owner_id=row[1],
        original_name=row[2],
        size_bytes=row[3],
        storage_path=row[4],
        mime_type=row[5],
        uploaded_at=row[6],
        sheets=_sheets_from_json(row[7]),
        columns=list(row[8] or []),
        total_row_count=row[9],
        processed=bool(row[10]),
        processing_error=row[11],
    )


def _chart_from_row(row: Sequence[Any]) -> ChartRecord:
    return ChartRecord(
        id=row[0],
        owner_id=row[1],
        file_id=row[2],
        chart_type=ChartType.parse(row[3]),
        x_column=row[4],
        y_column=row[5],
        title=row[6],
        description=row[7],
        series=row[8],
        created_at=row[9],
        updated_at=row[10],
    )


class PostgresStore:
    """RecordStore over a psycopg2 cursor.

    Transaction boundaries belong to the caller (see db.connection.db_cursor).
    Driver errors are wrapped in StoreError.
    """

    def __init__(self, cursor: Any, clock: Callable[[], datetime] = _utcnow) -> None:
        self._cur = cursor
        self._clock = clock

    def _execute(self, sql: str, params: Sequence[Any] | None = None) -> None:
        try:
            self._cur.execute(sql, params)
        except psycopg2.Error as e:
            raise StoreError(f"database error: {e}") from e

    def create_schema(self) -> None:
        self._execute(SCHEMA_SQL)

    # files -------------------------------------------------------------
    def add_file(self, record: FileRecord) -> FileRecord:
        self._execute(
            f"INSERT INTO sheet_files ({_FILE_COLUMNS}) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)",
            (
                record.id,
                record.owner_id,
                record.original_name,
                record.size_bytes,
                record.storage_path,
                record.mime_type,
                record.uploaded_at,
                Json(_sheets_to_json(record.sheets)),
                Json(list(record.columns)),
                record.total_row_count,
                record.processed,
                record.processing_error,
            ),
        )
        return record

    def get_file(self, file_id: str) -> FileRecord | None:
        self._execute(f"SELECT {_FILE_COLUMNS} FROM sheet_files WHERE id = %s", (file_id,))
        row = self._cur.fetchone()
        return _file_from_row(row) if row else None

    def list_files(
        self, owner_id: str, *, processed_only: bool = True, offset: int = 0, limit: int = 10
    ) -> list[FileRecord]:
        where = "owner_id = %s" + (" AND processed" if processed_only else "")
        self._execute(
            f"SELECT {_FILE_COLUMNS} FROM sheet_files WHERE {where} "
            "ORDER BY uploaded_at DESC LIMIT %s OFFSET %s",
            (owner_id, limit, offset),
        )
        return [_file_from_row(r) for r in self._cur.fetchall()]

    def count_files(self, owner_id: str | None = None, *, processed_only: bool = True) -> int:
        clauses: list[str] = []
        params: list[Any] = []
        if owner_id is not None:
            clauses.append("owner_id = %s")
            params.append(owner_id)
        if processed_only:
            clauses.append("processed")
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        self._execute(f"SELECT COUNT(*) FROM sheet_files{where}", tuple(params))
        return int(self._cur.fetchone()[0])

    def recent_files(self, limit: int = 10) -> list[FileRecord]:
        self._execute(
            f"SELECT {_FILE_COLUMNS} FROM sheet_files WHERE processed "
            "ORDER BY uploaded_at DESC LIMIT %s",
            (limit,),
        )
        return [_file_from_row(r) for r in self._cur.fetchall()]

    def delete_file(self, file_id: str) -> bool:
        # charts go with ON DELETE CASCADE
        self._execute("DELETE FROM sheet_files WHERE id = %s", (file_id,))
        return self._cur.rowcount > 0

    # charts ------------------------------------------------------------
    def upsert_chart(
        self,
        owner_id: str,
        file_id: str,
        chart_type: ChartType,
        x_column: str,
        y_column: str,
        title: str,
        description: str,
        series: dict[str, Any] | None = None,
    ) -> tuple[ChartRecord, bool]:
        now = self._clock()
        self._execute(
            f"INSERT INTO sheet_charts ({_CHART_COLUMNS}) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s) "
            "ON CONFLICT (owner_id, file_id, chart_type, x_column, y_column) DO UPDATE SET "
            "title = EXCLUDED.title, description = EXCLUDED.description, "
            "series = EXCLUDED.series, updated_at = EXCLUDED.updated_at "
            "RETURNING id, created_at, updated_at, (xmax = 0) AS inserted",
            (
                new_record_id(),
                owner_id,
                file_id,
                chart_type.value,
                x_column,
                y_column,
                title,
                description,
                Json(series) if series is not None else None,
                now,
                now,
            ),
        )
        chart_id, created_at, updated_at, inserted = self._cur.fetchone()
        record = ChartRecord(
            id=chart_id,
            owner_id=owner_id,
            file_id=file_id,
            chart_type=chart_type,
            x_column=x_column,
            y_column=y_column,
            title=title,
            description=description,
            series=series,
            created_at=created_at,
            updated_at=updated_at,
        )
        return record, bool(inserted)

    def get_chart(self, chart_id: str) -> ChartRecord | None:
        self._execute(f"SELECT {_CHART_COLUMNS} FROM sheet_charts WHERE id = %s", (chart_id,))
        row = self._cur.fetchone()
        return _chart_from_row(row) if row else None

    def list_charts(self, owner_id: str, file_id: str | None = None) -> list[ChartRecord]:
        if file_id is None:
            self._execute(
                f"SELECT {_CHART_COLUMNS} FROM sheet_charts WHERE owner_id = %s "
                "ORDER BY created_at DESC",
                (owner_id,),
            )
        else:
            self._execute(
                f"SELECT {_CHART_COLUMNS} FROM sheet_charts WHERE owner_id = %s AND file_id = %s "
                "ORDER BY created_at DESC",
                (owner_id, file_id),
            )
        return [_chart_from_row(r) for r in self._cur.fetchall()]

    def count_charts(self, owner_id: str | None = None) -> int:
        if owner_id is None:
            self._execute("SELECT COUNT(*) FROM sheet_charts")
        else:
            self._execute("SELECT COUNT(*) FROM sheet_charts WHERE owner_id = %s", (owner_id,))
        return int(self._cur.fetchone()[0])

    # owners ------------------------------------------------------------
    def delete_owner_data(self, owner_id: str) -> list[FileRecord]:
        self._execute(
            f"DELETE FROM sheet_files WHERE owner_id = %s RETURNING {_FILE_COLUMNS}",
            (owner_id,),
        )
        removed = [_file_from_row(r) for r in self._cur.fetchall()]
        self._execute("DELETE FROM sheet_charts WHERE owner_id = %s", (owner_id,))
        return removed

    def owner_ids(self) -> list[str]:
        self._execute(
            "SELECT owner_id FROM sheet_files GROUP BY owner_id ORDER BY MIN(uploaded_at)"
        )
        return [r[0] for r in self._cur.fetchall()]
