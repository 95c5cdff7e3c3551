"""Output renderer: rich table formatter, JSON formatter, format dispatch."""

import json
import logging
import sys
from io import StringIO

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from latencylog.aggregator import report_to_meta
from latencylog.models import Snapshot, Target
from latencylog.runner import RunOutcome

logger = logging.getLogger(__name__)

# Columns for the per-probe table.
_SNAPSHOT_COLUMNS = [
    ("Start", lambda s: s.started_at.strftime("%H:%M:%S.%f")[:-3]),
    ("Duration (ms)", lambda s: f"{s.duration_ms:.3f}"),
    ("Bucket", lambda s: s.distance_bucket),
    ("Status", lambda s: "ok" if s.ok else "fail"),
    ("Local", lambda s: _fmt_local(s)),
    ("Error", lambda s: s.error),
]

# Show at most this many per-probe rows in table mode.
_MAX_ROWS = 50


def render(
    outcome: RunOutcome,
    target: Target,
    fmt: str,
    *,
    file: object | None = None,
    width: int | None = None,
) -> None:
    """Dispatch output to the appropriate formatter.

    Args:
        outcome: Finished run to render.
        target: The probed target (used in titles).
        fmt: Output format — ``"table"`` or ``"json"``.
        file: Writable file object for output (default: ``sys.stdout``).
        width: Explicit console width (default: auto-detect).

    Raises:
        ValueError: If *fmt* is not ``"table"`` or ``"json"``.
    """
    if fmt == "table":
        render_table(outcome, target, file=file, width=width)
    elif fmt == "json":
        render_json(outcome, target, file=file)
    else:
        raise ValueError(f"Unknown output format: {fmt!r}")


# ---------------------------------------------------------------------------
# Table (rich) formatter
# ---------------------------------------------------------------------------


def render_table(
    outcome: RunOutcome,
    target: Target,
    *,
    file: object | None = None,
    width: int | None = None,
) -> None:
    """Render *outcome* as ``rich`` tables: per-probe rows, then a summary."""
    out = file or sys.stdout
    console = Console(file=out, highlight=False, width=width)

    report = outcome.report
    if report is None:
        console.print(f"{escape(target.label)} — no probes completed.")
        return

    title = f"{target.protocol.value} {escape(target.label)} — {report.count} probes"
    table = Table(title=title)
    for header, _ in _SNAPSHOT_COLUMNS:
        table.add_column(header)
    for snap in outcome.snapshots[:_MAX_ROWS]:
        table.add_row(*[_fmt(get(snap)) for _, get in _SNAPSHOT_COLUMNS])
    console.print(table)
    if len(outcome.snapshots) > _MAX_ROWS:
        console.print(f"  … {len(outcome.snapshots) - _MAX_ROWS} more not shown")

    summary = Table(title="Summary")
    summary.add_column("Metric")
    summary.add_column("Value", justify="right")
    summary.add_row("Probes started", str(outcome.ticks))
    summary.add_row("Probes counted", str(report.count))
    summary.add_row("Succeeded", str(report.success_count))
    summary.add_row("Failed", str(report.failure_count))
    summary.add_row("Average (ms)", f"{report.average_ms:.3f}")
    summary.add_row("Min (ms)", f"{report.min_ms:.3f}")
    summary.add_row("Max (ms)", f"{report.max_ms:.3f}")
    console.print(summary)


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------


def render_json(
    outcome: RunOutcome, target: Target, *, file: object | None = None
) -> None:
    """Render *outcome* as JSON to *file*.

    The object has ``target``, ``ticks``, ``summary`` (``null`` when no
    probe completed) and ``snapshots`` (flattened records, arrival order).
    """
    out = file or sys.stdout
    payload = {
        "target": {
            "protocol": target.protocol.value,
            "host": target.host,
            "port": target.port,
            "url": target.url,
            "query": target.query,
        },
        "ticks": outcome.ticks,
        "summary": report_to_meta(outcome.report) if outcome.report else None,
        "snapshots": [s.to_dict() for s in outcome.snapshots],
    }
    json.dump(payload, out, indent=2, default=str)
    out.write("\n")  # type: ignore[union-attr]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fmt_local(snap: Snapshot) -> str | None:
    if not snap.local_address:
        return None
    return f"{snap.local_address}:{snap.local_port}"


def _fmt(value: object) -> str:
    """Format a field value for table display.

    ``None`` becomes ``"—"``, everything else is stringified with rich
    markup escaped (error texts contain brackets).
    """
    if value is None:
        return "—"
    return escape(str(value))


def render_to_string(
    outcome: RunOutcome, target: Target, fmt: str, *, width: int = 200
) -> str:
    """Render to a string instead of stdout — useful for testing."""
    buf = StringIO()
    render(outcome, target, fmt, file=buf, width=width)
    return buf.getvalue()
