"""Run coordinator: wires probe, dispatcher, collector, aggregator and sink."""

import logging
from dataclasses import dataclass

from latencylog.aggregator import aggregate
from latencylog.collector import Collector
from latencylog.config import LatencyConfig
from latencylog.dispatcher import Dispatcher
from latencylog.models import AggregateReport, Protocol, Snapshot, Target
from latencylog.probes import Probe, get_probe
from latencylog.sinks import Sink, SinkError, build_sink

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """Everything one sampling run shares, owned by ``run()``'s caller.

    Attributes:
        target: The endpoint being probed.
        probe: Probe instance chosen once for the target's protocol.
        sink: Where results are exported (``NullSink`` when offline).
        config: Timing and sink settings.
    """

    target: Target
    probe: Probe
    sink: Sink
    config: LatencyConfig


@dataclass
class RunOutcome:
    """What a finished run produced.

    Attributes:
        ticks: Probes started before the deadline.
        snapshots: Result set in arrival order.
        report: Aggregate, or None when no probe reported in time.
    """

    ticks: int
    snapshots: tuple[Snapshot, ...]
    report: AggregateReport | None


def build_context(
    target: Target, config: LatencyConfig, sink: Sink | None = None
) -> RunContext:
    """Select the probe and sink for *target* once, before the run."""
    options: dict[str, object] = {"timeout": config.timeout}
    if target.protocol is Protocol.HTTP:
        options["verify"] = config.verify_tls
    return RunContext(
        target=target,
        probe=get_probe(target.protocol, **options),
        sink=sink if sink is not None else build_sink(config),
        config=config,
    )


def run(context: RunContext) -> RunOutcome:
    """Execute one sampling run end to end.

    Pipeline: sink check → dispatch until deadline → optional drain →
    aggregate → sink write.

    Raises:
        SinkError: If the sink is unreachable at startup, or the
            post-run write fails and ``config.sink_fatal`` is set.
    """
    config = context.config
    sink = context.sink

    try:
        sink.open()
        collector = Collector()
        collector.start()
        dispatcher = Dispatcher(context, collector)

        try:
            ticks = dispatcher.run()
        except KeyboardInterrupt:
            dispatcher.stop()
            ticks = dispatcher.ticks
            logger.warning("Interrupted after %d tick(s); aggregating early", ticks)

        if config.drain > 0 and len(collector) < ticks:
            if not collector.wait_for(ticks, timeout=config.drain):
                logger.info("Drain window of %gs expired", config.drain)

        snapshots = collector.close()
        missing = ticks - len(snapshots)
        if missing > 0:
            logger.info("%d probe(s) still in flight were not counted", missing)

        report = aggregate(snapshots)
        if report is None:
            logger.info("No probes completed; nothing to report")
            return RunOutcome(ticks=ticks, snapshots=snapshots, report=None)

        logger.info("Snapshots: %d", report.count)
        logger.info(
            "Average after %gs and %d checks: %.3fms",
            config.duration,
            report.count,
            report.average_ms,
        )

        try:
            sink.write(report)
        except SinkError as exc:
            if config.sink_fatal:
                raise
            logger.error("Sink write failed: %s", exc)

        return RunOutcome(ticks=ticks, snapshots=snapshots, report=report)
    finally:
        sink.close()
