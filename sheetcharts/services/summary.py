from __future__ import annotations

from ..models.ingest_result import IngestResult

"""SUMMARY line rendering for batch ingest runs."""


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation for very small durations
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: IngestResult) -> str:
    """Render the one-line summary of an ingest run.

    Format:
    SUMMARY files={total} processed={n} failed={n} rejected={n} rows={n} elapsed_sec={s}

    Examples:
        >>> from datetime import datetime, timezone
        >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> render_summary_line(IngestResult(
        ...     processed_files=2, failed_files=1, rejected_files=0, total_rows=40,
        ...     start_time=t, end_time=t, elapsed_seconds=1.5))
        'SUMMARY files=3 processed=2 failed=1 rejected=0 rows=40 elapsed_sec=1.5'
    """
    return (
        f"SUMMARY files={result.total_files} "
        f"processed={result.processed_files} "
        f"failed={result.failed_files} "
        f"rejected={result.rejected_files} "
        f"rows={result.total_rows} "
        f"elapsed_sec={_format_seconds(result.elapsed_seconds)}"
    )
