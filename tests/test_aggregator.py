"""Tests for latencylog.aggregator — statistics computation."""

from datetime import UTC, datetime, timedelta

import pytest

from latencylog.aggregator import aggregate, report_to_meta
from latencylog.models import AggregateReport, Protocol, SinkRow, Snapshot, Status

_START = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _make_snapshot(**overrides: object) -> Snapshot:
    """Create a Snapshot with sensible defaults, overridable per-field."""
    duration = overrides.get("duration_ms", 5.0)
    defaults: dict = {
        "started_at": _START,
        "ended_at": _START + timedelta(milliseconds=duration),
        "duration_ms": duration,
        "target_host": "10.0.0.1",
        "target_port": 80,
        "protocol": Protocol.TCP,
        "status": Status.SUCCESS,
    }
    defaults.update(overrides)
    return Snapshot(**defaults)


class TestAggregate:
    """Core aggregation logic."""

    def test_empty_returns_none(self) -> None:
        assert aggregate([]) is None

    def test_accepts_any_iterable(self) -> None:
        report = aggregate(_make_snapshot() for _ in range(3))
        assert report is not None
        assert report.count == 3

    def test_average_includes_failures(self) -> None:
        snaps = [
            _make_snapshot(duration_ms=4.0),
            _make_snapshot(duration_ms=6.0),
            _make_snapshot(duration_ms=20.0, status=Status.FAILURE),
        ]
        report = aggregate(snaps)
        assert report.count == 3
        assert report.average_ms == pytest.approx(10.0)
        assert report.success_count == 2
        assert report.failure_count == 1
        assert report.min_ms == 4.0
        assert report.max_ms == 20.0

    def test_all_failures_average_positive(self) -> None:
        snaps = [
            _make_snapshot(duration_ms=0.3, status=Status.FAILURE),
            _make_snapshot(duration_ms=0.5, status=Status.FAILURE),
        ]
        report = aggregate(snaps)
        assert report.average_ms == pytest.approx(0.4)
        assert report.success_count == 0
        assert all(row.status == 0 for row in report.rows)

    def test_one_row_per_snapshot_in_order(self) -> None:
        snaps = [
            _make_snapshot(target_port=1),
            _make_snapshot(target_port=2, status=Status.FAILURE),
            _make_snapshot(target_port=3),
        ]
        report = aggregate(snaps)
        assert [r.destination_port for r in report.rows] == [1, 2, 3]
        assert all(isinstance(r, SinkRow) for r in report.rows)
        assert report.rows[1].status == 0

    def test_idempotent(self) -> None:
        snaps = tuple(_make_snapshot(duration_ms=float(i)) for i in range(1, 6))
        assert aggregate(snaps) == aggregate(snaps)

    def test_returns_aggregate_report(self) -> None:
        assert isinstance(aggregate([_make_snapshot()]), AggregateReport)


class TestReportToMeta:
    def test_summary_keys_without_rows(self) -> None:
        meta = report_to_meta(aggregate([_make_snapshot(duration_ms=7.0)]))
        assert meta == {
            "count": 1,
            "average_ms": 7.0,
            "success_count": 1,
            "failure_count": 0,
            "min_ms": 7.0,
            "max_ms": 7.0,
        }
