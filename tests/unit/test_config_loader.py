from __future__ import annotations
import pytest
from pathlib import Path

from sheetcharts.config.loader import ConfigError, config_from_dict, load_config
from sheetcharts.models.config_models import DEFAULT_ALLOWED_MIME_TYPES


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.source_directory == "./data"
    assert cfg.max_file_size_bytes == 1048576
    assert cfg.preview_rows == 5
    # defaults for keys not in the file
    assert cfg.allowed_mime_types == DEFAULT_ALLOWED_MIME_TYPES
    assert cfg.max_rows_per_sheet is None
    assert not cfg.database.is_configured


def test_load_config_missing_file(temp_workdir: Path):
    missing = temp_workdir / "config" / "not_exists.yml"
    with pytest.raises(ConfigError) as e:
        load_config(missing)
    assert "config file not found" in str(e.value)


def test_load_config_empty_file_uses_defaults(temp_workdir: Path):
    path = temp_workdir / "config" / "empty.yml"
    path.write_text("", encoding="utf-8")
    cfg = load_config(path)
    assert cfg.max_categories == 20
    assert cfg.max_points == 100


def test_load_config_invalid_yaml(write_config: Path):
    write_config.write_text("preview_rows: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "invalid yaml" in str(e.value)


def test_load_config_extra_field(write_config: Path):
    # additionalProperties: false
    text = write_config.read_text(encoding="utf-8") + "\nextra_field: not_allowed\n"
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value)


@pytest.mark.parametrize(
    "data",
    [
        {"max_points": "many"},
        {"max_categories": 0},
        {"allowed_mime_types": []},
        {"database": {"port": 70000}},
    ],
)
def test_config_from_dict_rejects_bad_values(data):
    with pytest.raises(ConfigError) as e:
        config_from_dict(data)
    assert "config validation failed" in str(e.value)


def test_config_root_must_be_mapping():
    with pytest.raises(ConfigError):
        config_from_dict(["not", "a", "mapping"])  # type: ignore[arg-type]


def test_database_section(write_config: Path):
    text = write_config.read_text(encoding="utf-8") + (
        "database:\n  host: localhost\n  port: 5432\n  user: app\n  database: charts\n"
    )
    write_config.write_text(text, encoding="utf-8")
    cfg = load_config(write_config)
    assert cfg.database.is_configured
    assert cfg.database.port == 5432


def test_max_rows_per_sheet_and_mime_types():
    cfg = config_from_dict({"max_rows_per_sheet": 500, "allowed_mime_types": ["application/vnd.ms-excel"]})
    assert cfg.max_rows_per_sheet == 500
    assert cfg.allowed_mime_types == ("application/vnd.ms-excel",)
