from __future__ import annotations

from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

"""Usage metrics collaborator.

Services report events through an injected MetricsCollector instead of
module-level counters:

    record_event(kind, metadata)   e.g. ("chart_created", {"chart_type": "bar"})
    query_stats(window)            aggregate over the trailing time window

InMemoryMetrics keeps events in process memory and prunes anything older than
its retention period (30 days by default).
"""

__all__ = [
    "EVENT_FILE_UPLOADED",
    "EVENT_UPLOAD_FAILED",
    "EVENT_CHART_CREATED",
    "EVENT_CHART_SAVED",
    "MetricsCollector",
    "MetricsEvent",
    "MetricsStats",
    "InMemoryMetrics",
]

EVENT_FILE_UPLOADED = "file_uploaded"
EVENT_UPLOAD_FAILED = "upload_failed"
EVENT_CHART_CREATED = "chart_created"
EVENT_CHART_SAVED = "chart_saved"

DEFAULT_TOP_CHART_TYPE = "bar"


class MetricsCollector(Protocol):
    def record_event(self, kind: str, metadata: dict[str, Any] | None = None) -> None: ...

    def query_stats(self, window: timedelta) -> MetricsStats: ...


@dataclass(frozen=True)
class MetricsEvent:
    kind: str
    timestamp: datetime
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MetricsStats:
    charts_created: int
    files_uploaded: int
    top_chart_type: str
    success_rate: int       # charts per upload in percent, 100 with no uploads
    events: int
    chart_types: dict[str, int] = field(default_factory=dict)


class InMemoryMetrics:
    def __init__(
        self,
        clock: Callable[[], datetime] | None = None,
        retention: timedelta = timedelta(days=30),
    ) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._retention = retention
        self._events: list[MetricsEvent] = []

    def record_event(self, kind: str, metadata: dict[str, Any] | None = None) -> None:
        now = self._clock()
        self._events.append(MetricsEvent(kind=kind, timestamp=now, metadata=dict(metadata or {})))
        self._prune(now)

    def _prune(self, now: datetime) -> None:
        cutoff = now - self._retention
        if self._events and self._events[0].timestamp < cutoff:
            self._events = [e for e in self._events if e.timestamp >= cutoff]

    def query_stats(self, window: timedelta) -> MetricsStats:
        cutoff = self._clock() - window
        events = [e for e in self._events if e.timestamp >= cutoff]
        charts = [e for e in events if e.kind == EVENT_CHART_CREATED]
        uploads = [e for e in events if e.kind == EVENT_FILE_UPLOADED]
        chart_types = Counter(str(e.metadata.get("chart_type", "unknown")) for e in charts)
        top = chart_types.most_common(1)[0][0] if chart_types else DEFAULT_TOP_CHART_TYPE
        success_rate = round(len(charts) / len(uploads) * 100) if uploads else 100
        return MetricsStats(
            charts_created=len(charts),
            files_uploaded=len(uploads),
            top_chart_type=top,
            success_rate=success_rate,
            events=len(events),
            chart_types=dict(chart_types),
        )
