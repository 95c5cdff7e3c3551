"""TCP probe: connect, write a fixed payload, record the bound source endpoint."""

import logging
import socket

from latencylog.models import Protocol, Snapshot, Status, Target
from latencylog.probes import Probe, Stopwatch, describe_error

logger = logging.getLogger(__name__)

PAYLOAD = bytes(8)


class TCPProbe(Probe):
    """Time a TCP handshake plus one small write.

    The elapsed time covers dial start to post-write.  The local address
    reported is the one the OS actually bound, which exposes NAT and
    multipath routing differences between samples.
    """

    protocol = Protocol.TCP

    def execute(self, target: Target) -> Snapshot:
        watch = Stopwatch()
        try:
            sock = socket.create_connection(
                (target.host, target.port), timeout=self.timeout
            )
        except (OSError, ValueError) as exc:
            logger.debug("TCP connect to %s failed: %s", target.label, exc)
            return watch.snapshot(target, Status.FAILURE, error=describe_error(exc))

        local: tuple[str, int] = ("", 0)
        try:
            local_addr = sock.getsockname()
            local = (local_addr[0], local_addr[1])
            sock.sendall(PAYLOAD)
            watch.stop()
        except OSError as exc:
            sock.close()
            return watch.snapshot(
                target, Status.FAILURE, local=local, error=describe_error(exc)
            )

        try:
            sock.close()
        except OSError as exc:
            return watch.snapshot(
                target, Status.FAILURE, local=local, error=describe_error(exc)
            )

        return watch.snapshot(target, Status.SUCCESS, local=local)
