from __future__ import annotations
from pathlib import Path

from sheetcharts.services.storage import FileStorage


def test_save_uses_unique_names_and_keeps_suffix(tmp_path: Path):
    storage = FileStorage(tmp_path / "uploads")
    first = storage.save("Sales.XLSX", b"one")
    second = storage.save("Sales.XLSX", b"two")
    assert first != second
    assert first.suffix == ".xlsx"
    assert first.parent == tmp_path / "uploads"
    assert first.read_bytes() == b"one"


def test_unsafe_suffix_is_dropped(tmp_path: Path):
    path = FileStorage(tmp_path).save("../../evil.x;rm -rf", b"")
    assert path.suffix == ""
    assert path.parent == tmp_path


def test_delete_tolerates_missing_file(tmp_path: Path, capsys):
    from sheetcharts.logging.init import setup_logging

    setup_logging()
    storage = FileStorage(tmp_path)
    path = storage.save("a.xlsx", b"x")
    assert storage.delete(path)
    assert not path.exists()
    assert not storage.delete(path)
    assert "WARN could not delete stored file (missing)" in capsys.readouterr().out
