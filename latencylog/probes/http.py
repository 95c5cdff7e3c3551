"""HTTP probe: timed GET up to response headers, body drained untimed."""

import logging

import requests
import urllib3.exceptions

from latencylog.models import Protocol, Snapshot, Status, Target
from latencylog.probes import DEFAULT_TIMEOUT, Probe, Stopwatch, describe_error

logger = logging.getLogger(__name__)

USER_AGENT = "latencylog/0.1"


class HTTPProbe(Probe):
    """Time an HTTP(S) GET from request start to headers received.

    Every call opens a fresh session so each sample pays for its own
    connection setup, and closes it explicitly afterwards.

    Attributes:
        verify: Whether to verify TLS certificates.
    """

    protocol = Protocol.HTTP

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, verify: bool = True) -> None:
        super().__init__(timeout=timeout)
        self.verify = verify

    def execute(self, target: Target) -> Snapshot:
        url = target.url or f"http://{target.host}:{target.port}/"
        session = requests.Session()
        watch = Stopwatch()
        try:
            resp = session.get(
                url,
                stream=True,
                timeout=self.timeout,
                verify=self.verify,
                allow_redirects=False,
                headers={"User-Agent": USER_AGENT},
            )
        except (
            requests.exceptions.RequestException,
            urllib3.exceptions.HTTPError,
            ValueError,
        ) as exc:
            # urllib3 raises LocationParseError unwrapped for malformed hosts.
            logger.debug("HTTP GET %s failed: %s", url, exc)
            session.close()
            return watch.snapshot(target, Status.FAILURE, error=describe_error(exc))

        watch.stop()
        local = _local_endpoint(resp)
        error: str | None = None

        try:
            # Drain so the connection finishes cleanly; not part of the timing.
            for _chunk in resp.iter_content(chunk_size=65536):
                pass
            if resp.status_code >= 400:
                error = f"HTTP {resp.status_code}: {resp.reason}"
        except (requests.exceptions.RequestException, urllib3.exceptions.HTTPError) as exc:
            error = describe_error(exc)

        try:
            resp.close()
            session.close()
        except OSError as exc:
            error = error or describe_error(exc)

        if error is not None:
            return watch.snapshot(target, Status.FAILURE, local=local, error=error)
        return watch.snapshot(target, Status.SUCCESS, local=local)


def _local_endpoint(resp: requests.Response) -> tuple[str, int]:
    """Best-effort lookup of the source endpoint behind *resp*.

    Reads the socket of the urllib3 connection that served the response.
    Must be called before the body is consumed, after which the
    connection goes back to the pool.  Returns ``("", 0)`` when the
    socket is not reachable.
    """
    conn = getattr(resp.raw, "connection", None) or getattr(resp.raw, "_connection", None)
    sock = getattr(conn, "sock", None)
    if sock is None:
        return "", 0
    try:
        addr = sock.getsockname()
    except OSError:
        return "", 0
    return addr[0], addr[1]
