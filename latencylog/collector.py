"""Collector: serializes arriving snapshots into the run's result set."""

import logging
import queue
import threading

from latencylog.models import Snapshot

logger = logging.getLogger(__name__)

# Marks the end of the stream on the hand-off queue.
_CLOSE = object()


class Collector:
    """Single owner of the result set.

    Probe threads hand snapshots over with ``submit()``; one consumer
    thread appends them in arrival order and logs a line for each.  Only
    the consumer thread mutates the result list.  After ``close()`` any
    further submissions are dropped.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue = queue.Queue()
        self._results: list[Snapshot] = []
        self._arrived = threading.Condition()
        self._closed = threading.Event()
        self._gate = threading.Lock()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start the consumer thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._consume, name="latencylog-collector", daemon=True
        )
        self._thread.start()

    def submit(self, snapshot: Snapshot) -> None:
        """Hand *snapshot* to the collector.  Safe from any thread."""
        with self._gate:
            if not self._closed.is_set():
                self._queue.put(snapshot)
                return
        logger.debug(
            "Dropping late result for %s:%d (%.3fms)",
            snapshot.target_host,
            snapshot.target_port,
            snapshot.duration_ms,
        )

    def wait_for(self, count: int, timeout: float) -> bool:
        """Block until *count* snapshots have arrived or *timeout* expires.

        Returns:
            ``True`` if the count was reached.
        """
        with self._arrived:
            return self._arrived.wait_for(
                lambda: len(self._results) >= count, timeout=timeout
            )

    def close(self) -> tuple[Snapshot, ...]:
        """Stop accepting snapshots and return the frozen result set.

        Snapshots already queued before the call are still appended.
        """
        # Nothing may be queued behind the sentinel.
        with self._gate:
            self._closed.set()
            self._queue.put(_CLOSE)
        if self._thread is not None:
            self._thread.join()
        return self.results

    @property
    def results(self) -> tuple[Snapshot, ...]:
        with self._arrived:
            return tuple(self._results)

    def __len__(self) -> int:
        with self._arrived:
            return len(self._results)

    def _consume(self) -> None:
        while True:
            item = self._queue.get()
            if item is _CLOSE:
                return
            with self._arrived:
                self._results.append(item)
                self._arrived.notify_all()
            _log_arrival(item)


def _log_arrival(snap: Snapshot) -> None:
    if snap.ok:
        logger.info(
            "%.3fms, %s:%d (%s)",
            snap.duration_ms,
            snap.target_host,
            snap.target_port,
            snap.distance_bucket,
        )
    else:
        logger.warning(
            "%.3fms, %s:%d failed: %s",
            snap.duration_ms,
            snap.target_host,
            snap.target_port,
            snap.error,
        )
