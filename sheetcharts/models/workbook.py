from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

"""Workbook / Sheet / NormalizedTable domain models.

A Workbook is an ordered mapping of sheet name -> Sheet produced by the
workbook reader. Sheets hold the raw grid (header row + data rows); the
normalizer turns one Sheet into row objects keyed by header name.
"""

__all__ = [
    "Cell",
    "RowObject",
    "Sheet",
    "Workbook",
    "NormalizedTable",
]

# str | int | float | bool | None (empty)
Cell = Union[str, int, float, bool, None]

RowObject = dict[str, Any]


@dataclass(frozen=True)
class Sheet:
    """One worksheet grid: row 0 of the file is the header row.

    Data rows may be shorter than the header row; missing trailing cells are
    treated as empty.
    """
    name: str
    header_row: list[Cell]
    data_rows: list[list[Cell]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.data_rows)

    def to_dict(self) -> dict[str, Any]:
        return {"header_row": list(self.header_row), "data_rows": [list(r) for r in self.data_rows]}

    @staticmethod
    def from_dict(name: str, data: dict[str, Any]) -> Sheet:
        return Sheet(
            name=name,
            header_row=list(data.get("header_row") or []),
            data_rows=[list(r) for r in data.get("data_rows") or []],
        )


# Sheet name -> Sheet, file order preserved (dict insertion order)
Workbook = dict[str, Sheet]


@dataclass(frozen=True)
class NormalizedTable:
    """Row objects for one sheet plus its own column list."""
    columns: list[str]  # de-duplicated, empty headers dropped
    row_objects: list[RowObject]
    row_count: int
