"""Tests for latencylog.dispatcher — tick cadence and non-blocking dispatch."""

import threading
import time

from latencylog.collector import Collector
from latencylog.config import LatencyConfig
from latencylog.dispatcher import Dispatcher, DispatcherState
from latencylog.models import Protocol, Snapshot, Status, Target
from latencylog.probes import Probe, Stopwatch
from latencylog.runner import RunContext
from latencylog.sinks import NullSink, Sink

TARGET = Target(protocol=Protocol.TCP, host="10.0.0.1", port=80)


class FakeProbe(Probe):
    """Returns a success snapshot after an optional delay."""

    protocol = Protocol.TCP

    def __init__(self, delay: float = 0.0) -> None:
        super().__init__(timeout=1.0)
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def execute(self, target: Target) -> Snapshot:
        with self._lock:
            self.calls += 1
        watch = Stopwatch()
        if self.delay:
            time.sleep(self.delay)
        return watch.snapshot(target, Status.SUCCESS)


class RaisingProbe(Probe):
    """Raises from ``execute()`` instead of returning a snapshot."""

    protocol = Protocol.TCP

    def execute(self, target: Target) -> Snapshot:
        raise RuntimeError("probe bug")


class RecordingSink(Sink):
    def __init__(self) -> None:
        self.emitted: list[Snapshot] = []

    def emit(self, snapshot: Snapshot) -> None:
        self.emitted.append(snapshot)


def _context(probe: Probe, sink: Sink | None = None, **cfg: float) -> RunContext:
    return RunContext(
        target=TARGET,
        probe=probe,
        sink=sink or NullSink(),
        config=LatencyConfig(**cfg),
    )


class TestDispatcherTicks:
    def test_one_probe_per_tick(self) -> None:
        probe = FakeProbe()
        collector = Collector()
        collector.start()
        dispatcher = Dispatcher(_context(probe, interval=0.05, duration=0.26), collector)

        ticks = dispatcher.run()

        assert ticks == 5
        assert collector.wait_for(5, timeout=2.0)
        assert len(collector.close()) == 5
        assert probe.calls == 5

    def test_zero_ticks_when_duration_shorter_than_interval(self) -> None:
        probe = FakeProbe()
        collector = Collector()
        dispatcher = Dispatcher(_context(probe, interval=1.0, duration=0.1), collector)

        assert dispatcher.run() == 0
        assert probe.calls == 0

    def test_runs_until_deadline(self) -> None:
        dispatcher = Dispatcher(
            _context(FakeProbe(), interval=0.05, duration=0.3), Collector()
        )
        t0 = time.monotonic()
        dispatcher.run()
        assert time.monotonic() - t0 >= 0.29

    def test_slow_probes_do_not_delay_ticks(self) -> None:
        probe = FakeProbe(delay=1.0)
        collector = Collector()
        collector.start()
        dispatcher = Dispatcher(_context(probe, interval=0.05, duration=0.26), collector)

        t0 = time.monotonic()
        ticks = dispatcher.run()
        elapsed = time.monotonic() - t0

        assert ticks == 5
        assert elapsed < 0.9
        # None of the probes has finished yet, all are in flight.
        assert len(collector) == 0
        collector.close()

    def test_emits_each_snapshot_to_sink(self) -> None:
        sink = RecordingSink()
        collector = Collector()
        collector.start()
        dispatcher = Dispatcher(
            _context(FakeProbe(), sink, interval=0.05, duration=0.16), collector
        )

        dispatcher.run()
        collector.wait_for(3, timeout=2.0)
        collector.close()

        deadline = time.monotonic() + 2.0
        while len(sink.emitted) < 3 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert len(sink.emitted) == 3


class TestDispatcherState:
    def test_armed_then_draining(self) -> None:
        dispatcher = Dispatcher(
            _context(FakeProbe(), interval=0.05, duration=0.06), Collector()
        )
        assert dispatcher.state is DispatcherState.ARMED
        dispatcher.run()
        assert dispatcher.state is DispatcherState.DRAINING

    def test_stop_ends_run_early(self) -> None:
        dispatcher = Dispatcher(
            _context(FakeProbe(), interval=0.05, duration=30.0), Collector()
        )
        timer = threading.Timer(0.2, dispatcher.stop)
        timer.start()

        t0 = time.monotonic()
        ticks = dispatcher.run()

        assert time.monotonic() - t0 < 5.0
        assert 1 <= ticks <= 6
        assert dispatcher.state is DispatcherState.DRAINING

    def test_no_ticks_after_stop(self) -> None:
        probe = FakeProbe()
        dispatcher = Dispatcher(_context(probe, interval=0.05, duration=1.0), Collector())
        dispatcher.stop()
        assert dispatcher.run() == 0
        assert probe.calls == 0


class TestDispatcherProbeErrors:
    def test_raising_probe_still_yields_one_result_per_tick(self, caplog) -> None:
        sink = RecordingSink()
        collector = Collector()
        collector.start()
        dispatcher = Dispatcher(
            _context(RaisingProbe(), sink, interval=0.05, duration=0.16), collector
        )

        ticks = dispatcher.run()

        assert ticks == 3
        assert collector.wait_for(ticks, timeout=2.0)
        results = collector.close()
        assert len(results) == 3
        assert all(s.status is Status.FAILURE for s in results)
        assert results[0].error == "RuntimeError: probe bug"
        assert results[0].target_host == "10.0.0.1"
        assert "Probe of 10.0.0.1:80 raised" in caplog.text
