"""HTTP relay sink: POST each snapshot as JSON the moment it completes."""

import logging

import requests

from latencylog.models import Snapshot
from latencylog.sinks import Sink

logger = logging.getLogger(__name__)


class RelaySink(Sink):
    """Forward every snapshot to an HTTP endpoint, unbatched.

    Delivery failures are logged and never interrupt the run.
    """

    name = "relay"

    def __init__(self, url: str, verify: bool = True, timeout: float = 5.0) -> None:
        self.url = url
        self.verify = verify
        self.timeout = timeout

    def emit(self, snapshot: Snapshot) -> None:
        try:
            resp = requests.post(
                self.url,
                json=snapshot.to_dict(),
                timeout=self.timeout,
                verify=self.verify,
            )
        except requests.exceptions.RequestException as exc:
            logger.error("HTTP relay error: %s", exc)
            return
        if not 200 <= resp.status_code < 300:
            logger.error(
                "HTTP relay %s returned HTTP %d", self.url, resp.status_code
            )
