"""Data models: Target, Snapshot, SinkRow, AggregateReport dataclasses."""

from bisect import bisect_right
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Protocol(str, Enum):
    """Probe protocol variants."""

    TCP = "tcp"
    HTTP = "http"
    DNS = "dns"


class Status(int, Enum):
    """Probe outcome.  The integer value is what gets exported."""

    FAILURE = 0
    SUCCESS = 1


# Upper bounds (ms, exclusive) of each distance bucket, ascending.
# Anything at or above the last bound falls into the final bucket.
DISTANCE_THRESHOLDS_MS: tuple[int, ...] = (10, 20, 30, 40, 50, 60, 70, 80, 90)


def distance_bucket(duration_ms: float) -> str:
    """Classify *duration_ms* into a coarse human-readable bucket.

    Examples: ``4.2`` → ``"<10ms"``, ``27`` → ``"20-30ms"``,
    ``250`` → ``">=90ms"``.
    """
    idx = bisect_right(DISTANCE_THRESHOLDS_MS, duration_ms)
    if idx == 0:
        return f"<{DISTANCE_THRESHOLDS_MS[0]}ms"
    if idx == len(DISTANCE_THRESHOLDS_MS):
        return f">={DISTANCE_THRESHOLDS_MS[-1]}ms"
    return f"{DISTANCE_THRESHOLDS_MS[idx - 1]}-{DISTANCE_THRESHOLDS_MS[idx]}ms"


@dataclass(frozen=True)
class Target:
    """The endpoint a run probes, as given on the command line.

    Attributes:
        protocol: Which probe variant to use.
        host: Hostname or IP (the resolver for DNS targets).
        port: Destination port, defaults already applied.
        url: Full request URL (HTTP targets only).
        query: Name or IP to resolve (DNS targets only).
    """

    protocol: Protocol
    host: str
    port: int
    url: str | None = None
    query: str | None = None

    @property
    def label(self) -> str:
        """Short display form used in log lines."""
        if self.url:
            return self.url
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class Snapshot:
    """One probe attempt.  Written once by its probe, never mutated.

    Attributes:
        started_at: UTC time the operation began.
        ended_at: UTC time the operation finished or failed.
        duration_ms: Elapsed milliseconds, also set on failure.
        target_host: Probed host as given.
        target_port: Probed port as given (or defaulted).
        protocol: Probe variant that produced this record.
        status: ``SUCCESS`` only if the operation and its teardown
            both completed without error.
        local_address: Source IP the OS bound, ``""`` if never connected.
        local_port: Source port the OS bound, ``0`` if never connected.
        error: Failure description, ``None`` on success.
    """

    started_at: datetime
    ended_at: datetime
    duration_ms: float
    target_host: str
    target_port: int
    protocol: Protocol
    status: Status
    local_address: str = ""
    local_port: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is Status.SUCCESS

    @property
    def distance_bucket(self) -> str:
        return distance_bucket(self.duration_ms)

    def to_dict(self) -> dict:
        """Flatten to a JSON-ready dict (relay payload, JSON output)."""
        return {
            "start": self.started_at.isoformat(timespec="microseconds"),
            "end": self.ended_at.isoformat(timespec="microseconds"),
            "duration": self.duration_ms,
            "durationformat": "ms",
            "distanceestimate": self.distance_bucket,
            "host": self.target_host,
            "port": self.target_port,
            "proto": self.protocol.value,
            "status": self.status.value,
            "localip": self.local_address,
            "localport": self.local_port,
            "error": self.error,
        }


@dataclass(frozen=True)
class SinkRow:
    """Export-ready flattening of a Snapshot for the time-series store."""

    source_ip: str
    source_port: int
    destination_host: str
    destination_port: int
    duration_ms: float
    status: int
    proto: str
    start_ts: datetime
    end_ts: datetime

    @classmethod
    def from_snapshot(cls, snap: Snapshot) -> "SinkRow":
        return cls(
            source_ip=snap.local_address,
            source_port=snap.local_port,
            destination_host=snap.target_host,
            destination_port=snap.target_port,
            duration_ms=snap.duration_ms,
            status=snap.status.value,
            proto=snap.protocol.value,
            start_ts=snap.started_at,
            end_ts=snap.ended_at,
        )


@dataclass(frozen=True)
class AggregateReport:
    """Post-run reduction of the result set.

    Attributes:
        count: Number of snapshots collected.
        average_ms: Mean duration over all snapshots, failures included.
        success_count: Snapshots with ``Status.SUCCESS``.
        failure_count: Snapshots with ``Status.FAILURE``.
        min_ms: Shortest recorded duration.
        max_ms: Longest recorded duration.
        rows: One sink row per snapshot, regardless of status.
    """

    count: int
    average_ms: float
    success_count: int
    failure_count: int
    min_ms: float
    max_ms: float
    rows: tuple[SinkRow, ...] = ()
