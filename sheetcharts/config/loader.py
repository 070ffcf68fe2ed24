from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import AppConfig, DatabaseConfig

"""Config loader.

Responsibilities:
- Load YAML config (config/sheetcharts.yml by default)
- Validate against the bundled JSON schema (config_schema.json)
- Apply defaults for every missing key
"""

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "ConfigError",
    "load_config",
    "config_from_dict",
]

DEFAULT_CONFIG_PATH = Path("config/sheetcharts.yml")
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: when the schema file is missing or invalid, or the config
            data fails validation (unknown keys, wrong types, out of range values)
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def config_from_dict(data: dict[str, Any]) -> AppConfig:
    """Build an AppConfig from already-parsed config data (validated first)."""
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")
    _validate_config_schema(data)

    defaults = AppConfig()
    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    mime_types = data.get("allowed_mime_types")
    return AppConfig(
        storage_directory=data.get("storage_directory", defaults.storage_directory),
        source_directory=data.get("source_directory", defaults.source_directory),
        error_log_directory=data.get("error_log_directory", defaults.error_log_directory),
        max_file_size_bytes=data.get("max_file_size_bytes", defaults.max_file_size_bytes),
        allowed_mime_types=tuple(mime_types) if mime_types else defaults.allowed_mime_types,
        preview_rows=data.get("preview_rows", defaults.preview_rows),
        max_categories=data.get("max_categories", defaults.max_categories),
        max_points=data.get("max_points", defaults.max_points),
        max_rows_per_sheet=data.get("max_rows_per_sheet", defaults.max_rows_per_sheet),
        database=db,
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    return config_from_dict(data)
