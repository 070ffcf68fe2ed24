from __future__ import annotations
import json
from pathlib import Path

from sheetcharts.logging.error_log import FILE_LEVEL, ErrorLogBuffer, ErrorRecord

KEYS = {"timestamp", "file", "sheet", "error_type", "message"}


def test_error_record_creation_and_json_line():
    rec = ErrorRecord.create(
        file="file.xlsx",
        sheet=FILE_LEVEL,
        error_type="UNREADABLE_FILE",
        message="could not read xlsx workbook",
    )
    data = json.loads(rec.to_json_line())
    assert data["file"] == "file.xlsx"
    assert data["sheet"] == "<FILE_LEVEL>"
    assert data["error_type"] == "UNREADABLE_FILE"
    assert data["timestamp"].endswith("Z")
    assert set(data.keys()) == KEYS


def test_json_line_keeps_non_ascii():
    rec = ErrorRecord.create("売上.xlsx", "Sheet1", "CHART_GENERATION_ERROR", "ä")
    assert "売上.xlsx" in rec.to_json_line()


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("f1.xlsx", FILE_LEVEL, "UNREADABLE_FILE", "bad zip"))
    buf.append(ErrorRecord.create("f2.xlsx", FILE_LEVEL, "UPLOAD_REJECTED", "too large"))
    path = buf.flush()
    assert path is not None and path.exists()
    assert path.parent == Path("./logs")
    assert path.name.startswith("errors-") and path.suffix == ".log"
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    for raw in lines:
        assert set(json.loads(raw).keys()) == KEYS
    assert len(buf) == 0


def test_flush_without_records_writes_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "errors")
    assert buf.flush() is None
    assert not (tmp_path / "errors").exists()


def test_error_log_buffer_multiple_flushes(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(ErrorRecord.create("f.xlsx", FILE_LEVEL, "UNREADABLE_FILE", "one"))
    path = buf.flush()
    size1 = path.stat().st_size
    buf.append(ErrorRecord.create("f.xlsx", FILE_LEVEL, "UNREADABLE_FILE", "two"))
    path2 = buf.flush()
    assert path == path2
    assert path2.stat().st_size > size1
    assert buf.records == []
