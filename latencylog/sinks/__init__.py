"""Sink adapters: where finished measurements go after collection."""

from __future__ import annotations

from abc import ABC
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from latencylog.config import LatencyConfig
    from latencylog.models import AggregateReport, Snapshot


class SinkError(Exception):
    """Raised when a sink cannot be reached or a write is rejected."""


class Sink(ABC):
    """Base class for result sinks.

    Every hook defaults to a no-op so concrete sinks override only what
    they export: ``emit()`` for per-probe delivery, ``write()`` for the
    single post-run batch.
    """

    name = "none"

    def open(self) -> None:
        """Check the sink is usable before probing starts.

        Raises:
            SinkError: If the sink is unreachable.
        """

    def emit(self, snapshot: Snapshot) -> None:
        """Deliver one snapshot as soon as its probe finishes.

        Called from probe threads; must not raise.
        """

    def write(self, report: AggregateReport) -> None:
        """Make one attempt to export the run's rows.

        Raises:
            SinkError: If the write fails.
        """

    def close(self) -> None:
        """Release any held resources."""


class NullSink(Sink):
    """Offline mode: nothing is exported."""


def build_sink(config: LatencyConfig) -> Sink:
    """Pick the sink described by *config*.

    Returns a ``NullSink`` when neither an InfluxDB URL nor a relay URL
    is configured.
    """
    if config.influx_url:
        from latencylog.sinks.influx import InfluxSink

        return InfluxSink(
            url=config.influx_url,
            database=config.influx_database,
            measurement=config.influx_measurement,
            username=config.influx_username,
            password=config.influx_password,
            verify=config.verify_tls,
            timeout=config.timeout,
        )
    if config.relay_url:
        from latencylog.sinks.relay import RelaySink

        return RelaySink(
            url=config.relay_url,
            verify=config.verify_tls,
            timeout=config.timeout,
        )
    return NullSink()
