"""DNS probe: one UDP query against a given resolver."""

import logging
import socket
import time

import dns.exception
import dns.message
import dns.query
import dns.rdatatype

from latencylog.address import is_ip_literal, resolve_all
from latencylog.models import Protocol, Snapshot, Status, Target
from latencylog.probes import Probe, Stopwatch, describe_error

logger = logging.getLogger(__name__)


class DNSProbe(Probe):
    """Time a single DNS query from send to response.

    The query asks for an ``A`` record, or ``ANY`` when the name to
    resolve is a literal IP.  Any well-formed answer counts as a
    completed round trip, whatever its rcode; only transport errors,
    timeouts and mismatched replies are failures.
    """

    protocol = Protocol.DNS

    def execute(self, target: Target) -> Snapshot:
        qname = target.query or target.host
        rdtype = dns.rdatatype.ANY if is_ip_literal(qname) else dns.rdatatype.A

        watch = Stopwatch()
        try:
            where = _server_ip(target.host, target.port)
            query = dns.message.make_query(qname, rdtype)
        except (OSError, ValueError, dns.exception.DNSException) as exc:
            logger.debug("DNS setup for %s failed: %s", target.label, exc)
            return watch.snapshot(target, Status.FAILURE, error=describe_error(exc))

        family = socket.AF_INET6 if ":" in where else socket.AF_INET
        local: tuple[str, int] = ("", 0)
        try:
            sock = socket.socket(family, socket.SOCK_DGRAM)
        except OSError as exc:
            return watch.snapshot(target, Status.FAILURE, error=describe_error(exc))

        error: str | None = None
        try:
            sock.setblocking(False)
            # Connecting a UDP socket sends nothing but makes the OS pick
            # the source address we report.
            sock.connect((where, target.port))
            local_addr = sock.getsockname()
            local = (local_addr[0], local_addr[1])

            watch = Stopwatch()
            expiration = time.time() + self.timeout
            dns.query.send_udp(sock, query, None, expiration)
            received = dns.query.receive_udp(sock, None, expiration)
            watch.stop()

            if not query.is_response(received[0]):
                error = "reply does not match query"
        except (OSError, ValueError, dns.exception.DNSException) as exc:
            logger.debug("DNS query to %s failed: %s", target.label, exc)
            error = describe_error(exc)

        try:
            sock.close()
        except OSError as exc:
            error = error or describe_error(exc)

        if error is not None:
            return watch.snapshot(target, Status.FAILURE, local=local, error=error)
        return watch.snapshot(target, Status.SUCCESS, local=local)


def _server_ip(host: str, port: int) -> str:
    """Return an IP for the resolver *host*, resolving a name if needed.

    Raises:
        socket.gaierror: If *host* is a name that does not resolve.
    """
    host = host.strip("[]")
    if is_ip_literal(host):
        return host
    addresses = resolve_all(host, port)
    if not addresses:
        raise socket.gaierror(f"no addresses for {host}")
    return addresses[0][0]
