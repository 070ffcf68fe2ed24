from __future__ import annotations

import argparse
import json
import logging
import os
import random
import sys
import tempfile
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from ..db.connection import db_cursor
from ..db.store import MemoryStore, PostgresStore, StoreError
from ..excel.normalizer import catalog_columns, preview_rows, sheet_columns
from ..excel.reader import (
    FileTooLargeError,
    InvalidFileTypeError,
    UnreadableFileError,
    detect_format,
    read_workbook,
)
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.chart import ChartRequest
from ..models.config_models import AppConfig
from ..services.charts import ChartGenerationError, generate_chart
from ..services.files import RecordNotFoundError
from ..services.ingest import SPREADSHEET_SUFFIXES, IngestError, ingest_directory, ingest_upload
from ..services.metrics import InMemoryMetrics
from ..services.storage import FileStorage
from ..services.summary import render_summary_line

"""CLI entrypoint.

Subcommands:
- inspect FILE       print sheets, column catalog and a preview of the first sheet
- chart FILE ...     build a chart series (and optional analysis) as JSON
- ingest             batch ingest of source_directory into the record store

Exit codes: 0 success, 2 partial failure (some files failed), 1 fatal.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

CLI_OWNER = "cli"
UNKNOWN_MIME_TYPE = "application/octet-stream"


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env so that PG* / DATABASE_URL take precedence over the config file."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="sheetcharts", description="Spreadsheet -> chart series toolkit")
    p.add_argument("--config", type=Path, default=None, help=f"Config file (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    inspect = sub.add_parser("inspect", help="Print sheets, columns and preview rows")
    inspect.add_argument("file", type=Path)

    chart = sub.add_parser("chart", help="Build a chart series as JSON")
    chart.add_argument("file", type=Path)
    chart.add_argument("--x", required=True, dest="x_column")
    chart.add_argument("--y", required=True, dest="y_column")
    chart.add_argument("--type", required=True, dest="chart_type")
    chart.add_argument("--title")
    chart.add_argument("--sheet", help="Sheet name (default: first sheet)")
    chart.add_argument("--analyze", action="store_true", help="Include the descriptive analysis")
    chart.add_argument("--seed", type=int, help="Seed for generated scatter3d depth values")

    ingest = sub.add_parser("ingest", help="Ingest every spreadsheet in source_directory")
    ingest.add_argument("--owner", default=CLI_OWNER)
    ingest.add_argument("--directory", type=Path, help="Override source_directory")
    return p.parse_args(argv)


def _resolve_config(path: Path | None) -> AppConfig:
    # an explicit --config must exist; the default path is optional
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return AppConfig()
        path = DEFAULT_CONFIG_PATH
    return load_config(path)


def _mime_type_for(path: Path) -> str:
    return SPREADSHEET_SUFFIXES.get(path.suffix.lower(), UNKNOWN_MIME_TYPE)


def _print_json(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def _inspect(cfg: AppConfig, path: Path, logger: logging.Logger) -> int:
    if not path.is_file():
        logger.error(f"file not found: {path}")
        return EXIT_FATAL
    try:
        workbook = read_workbook(
            path.read_bytes(),
            detect_format(path.name, _mime_type_for(path)),
            max_rows=cfg.max_rows_per_sheet,
        )
    except UnreadableFileError as e:
        logger.error(f"read_error: {e}")
        return EXIT_FATAL

    print(f"FILE: {path.name}")
    for name, sheet in workbook.items():
        print(f"  SHEET: {name} rows={sheet.row_count} cols={sheet_columns(sheet)}")
    print(f"  COLUMNS: {catalog_columns(workbook)}")
    for row in preview_rows(workbook, cfg.preview_rows):
        print(f"    {json.dumps(row, ensure_ascii=False, default=str)}")
    return EXIT_SUCCESS_ALL


def _chart(cfg: AppConfig, args: argparse.Namespace, logger: logging.Logger) -> int:
    path: Path = args.file
    if not path.is_file():
        logger.error(f"file not found: {path}")
        return EXIT_FATAL
    try:
        request = ChartRequest.create(args.x_column, args.y_column, args.chart_type, title=args.title)
    except ValueError as e:
        logger.error(str(e))
        return EXIT_FATAL

    store = MemoryStore()
    with tempfile.TemporaryDirectory() as scratch:
        try:
            record = ingest_upload(
                store,
                FileStorage(scratch),
                owner_id=CLI_OWNER,
                original_name=path.name,
                data=path.read_bytes(),
                mime_type=_mime_type_for(path),
                config=cfg,
            )
        except (InvalidFileTypeError, FileTooLargeError) as e:
            logger.error(f"upload rejected: {e}")
            return EXIT_FATAL
        if not record.processed:
            logger.error(f"could not process {path.name}: {record.processing_error}")
            return EXIT_FATAL

        rng = random.Random(args.seed) if args.seed is not None else None
        try:
            result = generate_chart(
                store,
                CLI_OWNER,
                record.id,
                request,
                sheet_name=args.sheet,
                analyze=args.analyze,
                config=cfg,
                metrics=InMemoryMetrics(),
                rng=rng,
            )
        except (RecordNotFoundError, ChartGenerationError) as e:
            logger.error(str(e))
            return EXIT_FATAL

    _print_json(result.to_dict())
    return EXIT_SUCCESS_ALL


def _run_ingest(store: Any, cfg: AppConfig, args: argparse.Namespace, *, transactional: bool = False) -> Any:
    return ingest_directory(
        store,
        FileStorage(cfg.storage_directory),
        owner_id=args.owner,
        config=cfg,
        directory=args.directory,
        error_log=ErrorLogBuffer(Path(cfg.error_log_directory)),
        metrics=InMemoryMetrics(),
        # a failed live run rolls back every record, so drop the bytes too
        discard_on_store_error=transactional,
    )


def _ingest(cfg: AppConfig, args: argparse.Namespace, logger: logging.Logger) -> int:
    # DISABLE_DB_CONNECT=1 forces the in-memory store
    use_db = cfg.database.is_configured and os.getenv("DISABLE_DB_CONNECT") != "1"
    db_mode = "memory"
    result = None
    try:
        if use_db:
            try:
                with db_cursor(cfg.database) as cur:
                    store = PostgresStore(cur)
                    store.create_schema()
                    db_mode = "live"
                    result = _run_ingest(store, cfg, args, transactional=True)
            except psycopg2.OperationalError as db_e:
                if db_mode == "live":
                    raise
                logger.info(f"DB connection failed -> fallback to memory mode: {db_e}")
        if result is None:
            result = _run_ingest(MemoryStore(), cfg, args)
    except IngestError as e:
        logger.error(str(e))
        return EXIT_FATAL
    except (StoreError, psycopg2.Error) as e:
        logger.error(f"store: {e}")
        return EXIT_FATAL

    logger.info(f"mode={db_mode} total_rows={result.total_rows}")
    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(result)[len("SUMMARY "):])

    if result.has_failures:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # only read sys.argv when argv is None, so main([]) in tests stays isolated
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    logger = setup_logging()
    if args.debug:
        for h in logger.handlers:
            h.setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = _resolve_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "inspect":
        return _inspect(cfg, args.file, logger)
    if args.command == "chart":
        return _chart(cfg, args, logger)
    return _ingest(cfg, args, logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
