"""Probe registry and abstract Probe base class."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta

from latencylog.models import Protocol, Snapshot, Status, Target

DEFAULT_TIMEOUT = 5.0


class Probe(ABC):
    """Abstract base class for all latency probes.

    Each supported protocol implements a concrete subclass that performs
    exactly one timed network operation per ``execute()`` call.

    Attributes:
        timeout: OS-level connect/read timeout in seconds handed to the
            underlying socket or client library.
    """

    protocol: Protocol

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    @abstractmethod
    def execute(self, target: Target) -> Snapshot:
        """Probe *target* once and return the outcome.

        Implementations must not raise for network errors; failures are
        reported as a ``Snapshot`` with ``Status.FAILURE``.

        Args:
            target: The endpoint to probe.

        Returns:
            A ``Snapshot`` describing the attempt.
        """


class Stopwatch:
    """Pairs a wall-clock start time with a monotonic counter.

    ``ended_at`` is derived from ``started_at`` plus the monotonic
    elapsed time, so it can never precede ``started_at`` even if the
    system clock steps backwards mid-probe.
    """

    def __init__(self) -> None:
        self.started_at = datetime.now(UTC)
        self._t0 = time.perf_counter()
        self._elapsed: float | None = None

    def stop(self) -> None:
        """Freeze the elapsed time.  Later calls are ignored."""
        if self._elapsed is None:
            self._elapsed = time.perf_counter() - self._t0

    def snapshot(
        self,
        target: Target,
        status: Status,
        *,
        local: tuple[str, int] = ("", 0),
        error: str | None = None,
    ) -> Snapshot:
        """Build the ``Snapshot`` for this attempt, stopping if still running."""
        self.stop()
        elapsed = self._elapsed or 0.0
        return Snapshot(
            started_at=self.started_at,
            ended_at=self.started_at + timedelta(seconds=elapsed),
            duration_ms=elapsed * 1e3,
            target_host=target.host,
            target_port=target.port,
            protocol=target.protocol,
            status=status,
            local_address=local[0],
            local_port=local[1],
            error=error,
        )


def describe_error(exc: BaseException) -> str:
    """Render *exc* as ``"TypeName: message"`` for the snapshot record."""
    message = str(exc)
    name = type(exc).__name__
    return f"{name}: {message}" if message else name


def _build_registry() -> dict[str, type[Probe]]:
    """Build the protocol-name → Probe-class mapping.

    Imports are deferred to avoid circular imports and to keep the
    registry definition in one place.
    """
    from latencylog.probes.dns import DNSProbe
    from latencylog.probes.http import HTTPProbe
    from latencylog.probes.tcp import TCPProbe

    return {
        Protocol.TCP.value: TCPProbe,
        Protocol.HTTP.value: HTTPProbe,
        Protocol.DNS.value: DNSProbe,
    }


def get_probe(protocol: Protocol | str, **options: object) -> Probe:
    """Look up and instantiate the probe for *protocol*.

    Args:
        protocol: Protocol enum member or name (e.g. ``"tcp"``).
        **options: Constructor arguments for the probe class, e.g.
            ``timeout`` for all probes or ``verify`` for HTTP.

    Returns:
        An instance of the matching ``Probe`` subclass.

    Raises:
        ValueError: If *protocol* is not in the registry.
    """
    name = protocol.value if isinstance(protocol, Protocol) else str(protocol).lower()
    registry = _build_registry()
    probe_cls = registry.get(name)
    if probe_cls is None:
        known = ", ".join(sorted(registry))
        raise ValueError(f"Unknown protocol {name!r}. Known protocols: {known}")
    return probe_cls(**options)


def registered_protocols() -> list[str]:
    """Return a sorted list of all registered protocol names."""
    return sorted(_build_registry())
