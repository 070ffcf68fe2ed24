from __future__ import annotations
from datetime import UTC, datetime, timedelta

from sheetcharts.services.metrics import (
    EVENT_CHART_CREATED,
    EVENT_CHART_SAVED,
    EVENT_FILE_UPLOADED,
    EVENT_UPLOAD_FAILED,
    InMemoryMetrics,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 6, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def test_query_stats_aggregates_window():
    clock = FakeClock()
    metrics = InMemoryMetrics(clock=clock)
    metrics.record_event(EVENT_FILE_UPLOADED, {"file_id": "f1"})
    metrics.record_event(EVENT_FILE_UPLOADED, {"file_id": "f2"})
    metrics.record_event(EVENT_UPLOAD_FAILED)
    for chart_type in ("bar", "line", "bar"):
        metrics.record_event(EVENT_CHART_CREATED, {"chart_type": chart_type})
    metrics.record_event(EVENT_CHART_SAVED, {"chart_type": "bar"})

    stats = metrics.query_stats(timedelta(days=1))
    assert stats.charts_created == 3
    assert stats.files_uploaded == 2
    assert stats.top_chart_type == "bar"
    assert stats.success_rate == 150
    assert stats.events == 7
    assert stats.chart_types == {"bar": 2, "line": 1}


def test_empty_window_defaults():
    clock = FakeClock()
    metrics = InMemoryMetrics(clock=clock)
    metrics.record_event(EVENT_CHART_CREATED, {"chart_type": "pie"})
    clock.advance(days=2)
    stats = metrics.query_stats(timedelta(days=1))
    assert stats.charts_created == 0
    assert stats.top_chart_type == "bar"
    assert stats.success_rate == 100
    assert stats.events == 0
    # still inside the week
    assert metrics.query_stats(timedelta(days=7)).top_chart_type == "pie"


def test_events_past_retention_are_pruned():
    clock = FakeClock()
    metrics = InMemoryMetrics(clock=clock, retention=timedelta(days=30))
    metrics.record_event(EVENT_FILE_UPLOADED)
    clock.advance(days=31)
    metrics.record_event(EVENT_FILE_UPLOADED)
    assert metrics.query_stats(timedelta(days=365)).files_uploaded == 1


def test_metadata_is_copied():
    metrics = InMemoryMetrics()
    meta = {"chart_type": "scatter"}
    metrics.record_event(EVENT_CHART_CREATED, meta)
    meta["chart_type"] = "pie"
    assert metrics.query_stats(timedelta(hours=1)).top_chart_type == "scatter"
