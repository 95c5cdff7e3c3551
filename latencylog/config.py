"""YAML configuration file loading and duration parsing."""

import logging
import re
from dataclasses import dataclass, fields
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".latencylog"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.yaml"


@dataclass
class LatencyConfig:
    """Run settings for the latencylog tool.

    All fields have defaults so the tool runs without a config file, in
    offline mode (no sink).

    Attributes:
        duration: Length of the sampling window in seconds.
        interval: Seconds between ticks.
        timeout: Per-probe connect/read timeout in seconds.
        drain: Seconds to wait after the deadline for probes still in
            flight.  ``0`` drops late arrivals.
        influx_url: Base URL of an InfluxDB 1.x server, or None.
        influx_database: Database to write rows into.
        influx_measurement: Measurement name for rows.
        influx_username: Optional InfluxDB user.
        influx_password: Optional InfluxDB password.
        relay_url: Endpoint that receives one JSON POST per probe, or None.
        verify_tls: Verify TLS certificates for HTTP probes and sinks.
        sink_fatal: Exit non-zero when the post-run sink write fails,
            instead of only logging it.
    """

    duration: float = 60.0
    interval: float = 1.0
    timeout: float = 5.0
    drain: float = 0.0
    influx_url: str | None = None
    influx_database: str = "latencylog"
    influx_measurement: str = "latency"
    influx_username: str | None = None
    influx_password: str | None = None
    relay_url: str | None = None
    verify_tls: bool = True
    sink_fatal: bool = True


_DURATION_FIELDS = ("duration", "interval", "timeout", "drain")

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d*)?|\.\d+)\s*(ms|s|m|h)?\s*$")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


class ConfigError(Exception):
    """Raised when configuration is malformed, unreadable or contradictory."""


def parse_duration(value: object) -> float:
    """Convert a duration like ``"500ms"``, ``"30s"``, ``"5m"`` to seconds.

    Bare numbers (int, float or numeric strings) are taken as seconds.

    Raises:
        ConfigError: If *value* is not a recognisable duration.
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(str(value))
    if match is None:
        raise ConfigError(
            f"Invalid duration {value!r} (expected e.g. 500ms, 30s, 5m, 1h)"
        )
    number, unit = match.groups()
    return float(number) * _UNIT_SECONDS[unit or "s"]


def load_config(path: Path | str | None = None) -> LatencyConfig:
    """Load configuration from a YAML file.

    Args:
        path: Explicit path to a YAML config file.  If ``None``, the
            default location (``~/.latencylog/config.yaml``) is tried.
            If the default file doesn't exist, a ``LatencyConfig`` with
            all defaults is returned silently.

    Returns:
        A populated ``LatencyConfig`` instance.

    Raises:
        FileNotFoundError: If an explicit *path* was given but doesn't exist.
        ConfigError: If the file contains invalid YAML, has an unexpected
            top-level structure, or holds invalid values.
    """
    resolved = _resolve_path(path)

    if resolved is None:
        logger.debug("No config file found; using defaults")
        return LatencyConfig()

    logger.debug("Loading config from %s", resolved)
    text = resolved.read_text(encoding="utf-8")

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {resolved}: {exc}") from exc

    if raw is None:
        # Empty file: all defaults.
        return LatencyConfig()

    if not isinstance(raw, dict):
        raise ConfigError(
            f"Expected a YAML mapping at the top level in {resolved}, "
            f"got {type(raw).__name__}"
        )

    cfg = _build_config(raw, source=resolved)
    validate(cfg)
    return cfg


def validate(cfg: LatencyConfig) -> None:
    """Check *cfg* for values that would make a run meaningless.

    Raises:
        ConfigError: On non-positive duration/interval/timeout, a
            negative drain window, or both sinks configured at once.
    """
    for name in ("duration", "interval", "timeout"):
        if getattr(cfg, name) <= 0:
            raise ConfigError(f"{name} must be positive, got {getattr(cfg, name)}")
    if cfg.drain < 0:
        raise ConfigError(f"drain must not be negative, got {cfg.drain}")
    if cfg.influx_url and cfg.relay_url:
        raise ConfigError("Configure either influx_url or relay_url, not both")


# ------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------


def _resolve_path(path: Path | str | None) -> Path | None:
    """Return a concrete ``Path`` to read, or ``None`` if nothing to read.

    Raises:
        FileNotFoundError: If the caller supplied an explicit path that
            doesn't exist on disk.
    """
    if path is not None:
        p = Path(path).expanduser()
        if not p.is_file():
            raise FileNotFoundError(f"Config file not found: {p}")
        return p

    default = DEFAULT_CONFIG_PATH.expanduser()
    if default.is_file():
        return default
    return None


def _build_config(raw: dict, source: Path) -> LatencyConfig:
    """Map raw YAML dict to a ``LatencyConfig``, ignoring unknown keys."""
    known = {f.name for f in fields(LatencyConfig)}
    kwargs: dict[str, object] = {}

    for key, value in raw.items():
        if key not in known:
            continue
        kwargs[key] = parse_duration(value) if key in _DURATION_FIELDS else value

    unknown = set(raw) - known
    if unknown:
        logger.warning(
            "Ignoring unknown config keys in %s: %s",
            source,
            ", ".join(sorted(str(k) for k in unknown)),
        )

    return LatencyConfig(**kwargs)
