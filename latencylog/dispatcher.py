"""Dispatcher: fires one probe per tick without waiting on earlier probes."""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import TYPE_CHECKING

from latencylog.models import Status
from latencylog.probes import Stopwatch, describe_error

if TYPE_CHECKING:
    from latencylog.collector import Collector
    from latencylog.runner import RunContext

logger = logging.getLogger(__name__)


class DispatcherState(Enum):
    ARMED = "armed"
    DRAINING = "draining"


class Dispatcher:
    """Timer loop of a sampling run.

    Ticks sit on a fixed grid ``start + k * interval`` (``k >= 1``) and
    only ticks due strictly before the deadline fire.  Every tick starts
    exactly one probe thread, even when earlier probes are still
    outstanding; a tick that comes due late fires immediately rather
    than being skipped, so the grid never drifts.

    Attributes:
        state: ``ARMED`` until the deadline passes or ``stop()`` is
            called, then ``DRAINING`` for good.
        ticks: Number of probes started so far.
    """

    def __init__(self, context: RunContext, collector: Collector) -> None:
        self.context = context
        self.collector = collector
        self.state = DispatcherState.ARMED
        self.ticks = 0
        self._stop = threading.Event()

    def run(self) -> int:
        """Run until the deadline (or ``stop()``) and return the tick count.

        Never waits for probe completion; outstanding probe threads keep
        running after this returns.
        """
        interval = self.context.config.interval
        duration = self.context.config.duration
        start = time.monotonic()
        deadline = start + duration

        logger.info(
            "Probing %s every %gs for %gs",
            self.context.target.label,
            interval,
            duration,
        )

        k = 1
        while not self._stop.is_set():
            due = start + k * interval
            if due >= deadline:
                break
            remaining = due - time.monotonic()
            if remaining > 0 and self._stop.wait(remaining):
                break
            self._fire(k)
            k += 1

        remaining = deadline - time.monotonic()
        if remaining > 0:
            self._stop.wait(remaining)

        self._enter_draining()
        return self.ticks

    def stop(self) -> None:
        """End the run early.  No further ticks fire."""
        self._stop.set()
        self._enter_draining()

    def _enter_draining(self) -> None:
        if self.state is DispatcherState.DRAINING:
            return
        self.state = DispatcherState.DRAINING
        logger.debug("Dispatcher draining after %d tick(s)", self.ticks)

    def _fire(self, tick: int) -> None:
        thread = threading.Thread(
            target=self._probe_task,
            name=f"latencylog-probe-{tick}",
            daemon=True,
        )
        thread.start()
        self.ticks += 1

    def _probe_task(self) -> None:
        target = self.context.target
        watch = Stopwatch()
        try:
            snapshot = self.context.probe.execute(target)
        except Exception as exc:
            logger.exception("Probe of %s raised", target.label)
            snapshot = watch.snapshot(target, Status.FAILURE, error=describe_error(exc))
        self.collector.submit(snapshot)
        self.context.sink.emit(snapshot)
