from __future__ import annotations

import io
import math
from collections.abc import Iterable
from datetime import date, datetime, time
from pathlib import PurePath
from typing import Any

import pandas as pd

from ..models.config_models import (
    DEFAULT_ALLOWED_MIME_TYPES,
    DEFAULT_MAX_FILE_SIZE_BYTES,
    XLS_MIME_TYPE,
    XLSX_MIME_TYPE,
)
from ..models.workbook import Cell, Sheet, Workbook

"""Workbook reader.

Parses raw spreadsheet bytes (xlsx via openpyxl, xls via xlrd) into a
Workbook: every sheet in file order, row 0 as the header row, remaining rows
as data rows. Cells come out as str / int / float / bool / None.

The upload pre-check (MIME type + size) lives here too since it runs right
before the reader is invoked.
"""

__all__ = [
    "UnreadableFileError",
    "InvalidFileTypeError",
    "FileTooLargeError",
    "SUPPORTED_FORMATS",
    "check_upload",
    "detect_format",
    "read_workbook",
]

# file format -> pandas engine
SUPPORTED_FORMATS = {
    "xlsx": "openpyxl",
    "xls": "xlrd",
}

_MIME_FORMATS = {
    XLSX_MIME_TYPE: "xlsx",
    XLS_MIME_TYPE: "xls",
}


class UnreadableFileError(Exception):
    """Raised when bytes do not parse as a supported spreadsheet."""


class InvalidFileTypeError(Exception):
    """Raised by the pre-check for non-spreadsheet MIME types."""


class FileTooLargeError(Exception):
    """Raised by the pre-check when the upload exceeds the size cap."""


def check_upload(
    mime_type: str | None,
    size_bytes: int,
    allowed_mime_types: Iterable[str] = DEFAULT_ALLOWED_MIME_TYPES,
    max_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
) -> None:
    """Validate declared MIME type and size before parsing."""
    allowed = set(allowed_mime_types)
    if not mime_type or mime_type.split(";")[0].strip().lower() not in allowed:
        raise InvalidFileTypeError(
            f"unsupported file type '{mime_type}': only Excel files (.xlsx, .xls) are allowed"
        )
    if size_bytes > max_size_bytes:
        raise FileTooLargeError(
            f"file is {size_bytes} bytes, limit is {max_size_bytes} bytes"
        )


def detect_format(original_name: str | None, mime_type: str | None = None) -> str:
    """Pick the spreadsheet format from the file extension, then MIME type.

    Falls back to xlsx when neither is conclusive.
    """
    if original_name:
        suffix = PurePath(original_name).suffix.lower().lstrip(".")
        if suffix in SUPPORTED_FORMATS:
            return suffix
    if mime_type:
        fmt = _MIME_FORMATS.get(mime_type.split(";")[0].strip().lower())
        if fmt:
            return fmt
    return "xlsx"


def _to_cell(value: Any) -> Cell:
    """Convert one pandas cell into a plain Python cell value."""
    if value is None:
        return None
    if isinstance(value, str):
        return value if value != "" else None
    if isinstance(value, bool):
        return value
    if isinstance(value, (pd.Timestamp, datetime, date, time)):
        if isinstance(value, pd.Timestamp) and pd.isna(value):
            return None
        return value.isoformat()
    if hasattr(value, "item"):  # numpy scalar
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, (int, float, bool)):
        return value
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return str(value)


def _trim_trailing_empty(row: list[Cell]) -> list[Cell]:
    end = len(row)
    while end > 0 and row[end - 1] is None:
        end -= 1
    return row[:end]


def read_workbook(
    data: bytes,
    file_format: str = "xlsx",
    *,
    max_rows: int | None = None,
) -> Workbook:
    """Read spreadsheet bytes into a Workbook keyed by sheet name.

    Parameters
    ----------
    data: raw file bytes
    file_format: "xlsx" or "xls"
    max_rows: optional ceiling on data rows per sheet (hostile input guard)

    Raises
    ------
    UnreadableFileError: corrupt / unsupported / encrypted input, or a sheet
        longer than max_rows
    """
    engine = SUPPORTED_FORMATS.get(file_format)
    if engine is None:
        raise UnreadableFileError(f"unsupported spreadsheet format: {file_format}")

    try:
        xls = pd.ExcelFile(io.BytesIO(data), engine=engine)
    except Exception as e:
        raise UnreadableFileError(f"could not read {file_format} workbook: {e}") from e

    workbook: Workbook = {}
    with xls:
        for name in xls.sheet_names:
            try:
                # raw grid, no header inference; keep "NA"/"null" text as text
                df = xls.parse(name, header=None, keep_default_na=False)
            except Exception as e:
                raise UnreadableFileError(f"could not read sheet '{name}': {e}") from e
            if df.shape[0] == 0:
                continue
            if max_rows is not None and df.shape[0] - 1 > max_rows:
                raise UnreadableFileError(
                    f"sheet '{name}' has {df.shape[0] - 1} data rows, limit is {max_rows}"
                )
            grid = [
                _trim_trailing_empty([_to_cell(v) for v in raw])
                for raw in df.itertuples(index=False, name=None)
            ]
            workbook[str(name)] = Sheet(
                name=str(name),
                header_row=grid[0],
                data_rows=grid[1:],
            )
    return workbook
