"""Aggregator: average duration, success/failure counts, sink rows."""

import logging
from collections.abc import Iterable

from latencylog.models import AggregateReport, SinkRow, Snapshot, Status

logger = logging.getLogger(__name__)


def aggregate(snapshots: Iterable[Snapshot]) -> AggregateReport | None:
    """Reduce a run's snapshots into an ``AggregateReport``.

    The average covers every snapshot regardless of status, so failed
    probes contribute their time-to-failure.  Rows keep the input order.

    Args:
        snapshots: The collected result set.

    Returns:
        The report, or ``None`` if there is nothing to aggregate.
    """
    snaps = list(snapshots)
    if not snaps:
        return None

    durations = [s.duration_ms for s in snaps]
    successes = sum(1 for s in snaps if s.status is Status.SUCCESS)

    return AggregateReport(
        count=len(snaps),
        average_ms=sum(durations) / len(snaps),
        success_count=successes,
        failure_count=len(snaps) - successes,
        min_ms=min(durations),
        max_ms=max(durations),
        rows=tuple(SinkRow.from_snapshot(s) for s in snaps),
    )


def report_to_meta(report: AggregateReport) -> dict:
    """Summary fields of *report* as a plain dict (rows omitted)."""
    return {
        "count": report.count,
        "average_ms": report.average_ms,
        "success_count": report.success_count,
        "failure_count": report.failure_count,
        "min_ms": report.min_ms,
        "max_ms": report.max_ms,
    }
