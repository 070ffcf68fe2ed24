# Shared pytest fixtures
from __future__ import annotations
import io
import tempfile
from collections.abc import Callable
from pathlib import Path

import pandas as pd
import pytest

from sheetcharts.logging.init import reset_logging

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

REGION_SALES = [
    ["Region", "Sales"],
    ["East", 10],
    ["West", 20],
    ["East", 5],
]


def make_workbook_bytes(sheets: dict[str, list[list[object]]]) -> bytes:
    """Build xlsx bytes; each sheet is a raw grid (row 0 = headers)."""
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, header=False, index=False)
    return buf.getvalue()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """storage_directory: ./uploads
source_directory: ./data
error_log_directory: ./logs
max_file_size_bytes: 1048576
preview_rows: 5
max_categories: 20
max_points: 100
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "sheetcharts.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def workbook_bytes() -> Callable[[dict[str, list[list[object]]]], bytes]:
    return make_workbook_bytes


@pytest.fixture()
def region_sales_xlsx() -> bytes:
    return make_workbook_bytes({"Sheet1": REGION_SALES})


@pytest.fixture(autouse=True)
def _fresh_logging():
    # the app logger binds sys.stdout at setup; rebuild it per test for capsys
    reset_logging()
    yield
    reset_logging()
