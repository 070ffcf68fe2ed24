from __future__ import annotations

from typing import Any

from .values import text_label
from ..models.workbook import Cell, NormalizedTable, RowObject, Sheet, Workbook

"""Table normalizer.

Turns a Sheet's raw grid into row objects keyed by header name.

Steps:
1. Header cells that are empty or whitespace-only are dropped (their column
   values are dropped from every row object too)
2. Surviving headers map to the cell at the same position in each data row;
   missing trailing cells and empty cells map to ""
3. The FileRecord column catalog is the union of all sheets' headers in
   first-seen order; each sheet's own row objects only use its own headers
"""

__all__ = [
    "header_name",
    "sheet_columns",
    "normalize_sheet",
    "catalog_columns",
    "preview_rows",
    "first_sheet_columns",
]

PREVIEW_ROWS = 10


def header_name(cell: Cell) -> str | None:
    """Column name for a header cell, None when the header is empty."""
    if cell is None:
        return None
    name = text_label(cell).strip()
    return name or None


def _header_positions(sheet: Sheet) -> list[tuple[int, str]]:
    positions: list[tuple[int, str]] = []
    for index, cell in enumerate(sheet.header_row):
        name = header_name(cell)
        if name is not None:
            positions.append((index, name))
    return positions


def sheet_columns(sheet: Sheet) -> list[str]:
    """De-duplicated non-empty headers of one sheet, in column order."""
    columns: list[str] = []
    for _, name in _header_positions(sheet):
        if name not in columns:
            columns.append(name)
    return columns


def _row_object(positions: list[tuple[int, str]], raw: list[Cell]) -> RowObject:
    obj: dict[str, Any] = {}
    for index, name in positions:
        value = raw[index] if index < len(raw) else None
        obj[name] = "" if value is None else value
    return obj


def normalize_sheet(sheet: Sheet, limit: int | None = None) -> NormalizedTable:
    """Build row objects for a sheet (optionally only the first `limit` rows)."""
    positions = _header_positions(sheet)
    data_rows = sheet.data_rows if limit is None else sheet.data_rows[:limit]
    rows = [_row_object(positions, raw) for raw in data_rows]
    return NormalizedTable(
        columns=sheet_columns(sheet),
        row_objects=rows,
        row_count=sheet.row_count,
    )


def catalog_columns(workbook: Workbook) -> list[str]:
    """Union of non-empty headers across all sheets, first-seen order."""
    catalog: list[str] = []
    seen: set[str] = set()
    for sheet in workbook.values():
        for name in sheet_columns(sheet):
            if name not in seen:
                seen.add(name)
                catalog.append(name)
    return catalog


def _first_sheet(workbook: Workbook) -> Sheet | None:
    for sheet in workbook.values():
        return sheet
    return None


def first_sheet_columns(workbook: Workbook) -> list[str]:
    sheet = _first_sheet(workbook)
    return sheet_columns(sheet) if sheet is not None else []


def preview_rows(workbook: Workbook, limit: int = PREVIEW_ROWS) -> list[RowObject]:
    """First `limit` row objects of the first sheet only."""
    sheet = _first_sheet(workbook)
    if sheet is None:
        return []
    return normalize_sheet(sheet, limit=limit).row_objects
