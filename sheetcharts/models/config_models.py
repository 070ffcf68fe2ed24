from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for sheetcharts.

Populated by sheetcharts.config.loader after schema validation; every field
has the default that applies when the key is missing from the YAML file.
"""

DEFAULT_MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024

XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS_MIME_TYPE = "application/vnd.ms-excel"

DEFAULT_ALLOWED_MIME_TYPES = (XLSX_MIME_TYPE, XLS_MIME_TYPE)


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None

    @property
    def is_configured(self) -> bool:
        return any((self.host, self.database, self.dsn))


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object."""
    storage_directory: str = "./uploads"       # raw upload bytes
    source_directory: str = "./data"           # batch ingest input
    error_log_directory: str = "./logs"
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES
    allowed_mime_types: tuple[str, ...] = DEFAULT_ALLOWED_MIME_TYPES
    preview_rows: int = 10
    max_categories: int = 20
    max_points: int = 100
    max_rows_per_sheet: int | None = None      # reader ceiling, None = unbounded
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
