"""Tests for latencylog.models — dataclass construction and helpers."""

import dataclasses
from datetime import UTC, datetime, timedelta

import pytest

from latencylog.models import (
    AggregateReport,
    Protocol,
    SinkRow,
    Snapshot,
    Status,
    Target,
    distance_bucket,
)

_START = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=UTC)


def _make_snapshot(**overrides: object) -> Snapshot:
    """Create a Snapshot with sensible defaults, overridable per-field."""
    defaults: dict = {
        "started_at": _START,
        "ended_at": _START + timedelta(milliseconds=5),
        "duration_ms": 5.0,
        "target_host": "10.0.0.1",
        "target_port": 443,
        "protocol": Protocol.TCP,
        "status": Status.SUCCESS,
        "local_address": "192.168.1.20",
        "local_port": 51234,
    }
    defaults.update(overrides)
    return Snapshot(**defaults)


class TestDistanceBucket:
    """Static threshold table, ascending, last bucket open-ended."""

    @pytest.mark.parametrize(
        ("duration", "expected"),
        [
            (0.0, "<10ms"),
            (9.99, "<10ms"),
            (10.0, "10-20ms"),
            (27.5, "20-30ms"),
            (89.9, "80-90ms"),
            (90.0, ">=90ms"),
            (5000.0, ">=90ms"),
        ],
    )
    def test_buckets(self, duration: float, expected: str) -> None:
        assert distance_bucket(duration) == expected

    def test_snapshot_property_uses_duration(self) -> None:
        assert _make_snapshot(duration_ms=42.0).distance_bucket == "40-50ms"


class TestTarget:
    def test_label_host_port(self) -> None:
        target = Target(protocol=Protocol.TCP, host="example.com", port=80)
        assert target.label == "example.com:80"

    def test_label_prefers_url(self) -> None:
        target = Target(
            protocol=Protocol.HTTP,
            host="example.com",
            port=443,
            url="https://example.com/health",
        )
        assert target.label == "https://example.com/health"

    def test_frozen(self) -> None:
        target = Target(protocol=Protocol.TCP, host="h", port=1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            target.port = 2  # type: ignore[misc]


class TestSnapshot:
    def test_frozen(self) -> None:
        snap = _make_snapshot()
        with pytest.raises(dataclasses.FrozenInstanceError):
            snap.duration_ms = 1.0  # type: ignore[misc]

    def test_defaults_for_unconnected(self) -> None:
        snap = Snapshot(
            started_at=_START,
            ended_at=_START,
            duration_ms=0.0,
            target_host="h",
            target_port=1,
            protocol=Protocol.TCP,
            status=Status.FAILURE,
        )
        assert snap.local_address == ""
        assert snap.local_port == 0
        assert snap.error is None
        assert not snap.ok

    def test_to_dict_fields(self) -> None:
        d = _make_snapshot().to_dict()
        assert d["start"] == "2024-05-01T12:00:00.123456+00:00"
        assert d["duration"] == 5.0
        assert d["durationformat"] == "ms"
        assert d["distanceestimate"] == "<10ms"
        assert d["host"] == "10.0.0.1"
        assert d["port"] == 443
        assert d["proto"] == "tcp"
        assert d["status"] == 1
        assert d["localip"] == "192.168.1.20"
        assert d["localport"] == 51234
        assert d["error"] is None

    def test_to_dict_failure(self) -> None:
        d = _make_snapshot(status=Status.FAILURE, error="boom").to_dict()
        assert d["status"] == 0
        assert d["error"] == "boom"


class TestSinkRow:
    def test_from_snapshot(self) -> None:
        snap = _make_snapshot(protocol=Protocol.DNS, status=Status.FAILURE)
        row = SinkRow.from_snapshot(snap)
        assert row.source_ip == "192.168.1.20"
        assert row.source_port == 51234
        assert row.destination_host == "10.0.0.1"
        assert row.destination_port == 443
        assert row.duration_ms == 5.0
        assert row.status == 0
        assert row.proto == "dns"
        assert row.start_ts == snap.started_at
        assert row.end_ts == snap.ended_at


class TestAggregateReport:
    def test_rows_default_empty(self) -> None:
        report = AggregateReport(
            count=0,
            average_ms=0.0,
            success_count=0,
            failure_count=0,
            min_ms=0.0,
            max_ms=0.0,
        )
        assert report.rows == ()
