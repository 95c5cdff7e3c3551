"""InfluxDB sink: one line-protocol batch per run over the 1.x HTTP API."""

import logging
from datetime import UTC, datetime, timedelta

import requests

from latencylog.models import AggregateReport, SinkRow
from latencylog.sinks import Sink, SinkError

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_MICROSECOND = timedelta(microseconds=1)


class InfluxSink(Sink):
    """Write all rows of a run to InfluxDB in a single request.

    ``open()`` pings the server so an unreachable store stops the run
    before any probing.  ``write()`` posts the rows with microsecond
    precision and makes exactly one attempt.
    """

    name = "influxdb"

    def __init__(
        self,
        url: str,
        database: str,
        measurement: str = "latency",
        username: str | None = None,
        password: str | None = None,
        verify: bool = True,
        timeout: float = 5.0,
    ) -> None:
        self.url = url.rstrip("/")
        self.database = database
        self.measurement = measurement
        self.verify = verify
        self.timeout = timeout
        self._session = requests.Session()
        if username:
            self._session.auth = (username, password or "")

    def open(self) -> None:
        try:
            resp = self._session.get(
                f"{self.url}/ping", timeout=self.timeout, verify=self.verify
            )
        except requests.exceptions.RequestException as exc:
            raise SinkError(f"InfluxDB at {self.url} unreachable: {exc}") from exc
        if not resp.ok:
            raise SinkError(
                f"InfluxDB ping at {self.url} returned HTTP {resp.status_code}"
            )
        logger.info("Connected to InfluxDB at %s (db=%s)", self.url, self.database)

    def write(self, report: AggregateReport) -> None:
        body = "\n".join(to_line(self.measurement, row) for row in report.rows)
        try:
            resp = self._session.post(
                f"{self.url}/write",
                params={"db": self.database, "precision": "u"},
                data=body.encode("utf-8"),
                timeout=self.timeout,
                verify=self.verify,
            )
        except requests.exceptions.RequestException as exc:
            raise SinkError(f"InfluxDB write failed: {exc}") from exc
        if not resp.ok:
            raise SinkError(
                f"InfluxDB write rejected with HTTP {resp.status_code}: "
                f"{resp.text.strip()}"
            )
        logger.info("Wrote %d row(s) to InfluxDB", len(report.rows))

    def close(self) -> None:
        self._session.close()


def to_line(measurement: str, row: SinkRow) -> str:
    """Render *row* as one InfluxDB line-protocol record.

    Tags: ``source_ip`` (omitted when empty), ``destination_host``,
    ``destination_port``, ``proto``.  Fields: ``source_port``,
    ``duration_ms``, ``status``, ``start_ts``, ``end_ts``.  The point
    timestamp is the probe start in microseconds.
    """
    tags = [
        ("source_ip", row.source_ip),
        ("destination_host", row.destination_host),
        ("destination_port", str(row.destination_port)),
        ("proto", row.proto),
    ]
    tag_text = "".join(
        f",{_escape_key(k)}={_escape_key(v)}" for k, v in tags if v
    )
    start_us = to_epoch_us(row.start_ts)
    fields = ",".join(
        [
            f"source_port={row.source_port}i",
            f"duration_ms={float(row.duration_ms)!r}",
            f"status={row.status}i",
            f"start_ts={start_us}i",
            f"end_ts={to_epoch_us(row.end_ts)}i",
        ]
    )
    return f"{_escape_measurement(measurement)}{tag_text} {fields} {start_us}"


def to_epoch_us(ts: datetime) -> int:
    """Exact microseconds since the Unix epoch for an aware datetime."""
    return (ts - _EPOCH) // _MICROSECOND


def _escape_measurement(text: str) -> str:
    return text.replace(",", r"\,").replace(" ", r"\ ")


def _escape_key(text: str) -> str:
    return text.replace(",", r"\,").replace("=", r"\=").replace(" ", r"\ ")
