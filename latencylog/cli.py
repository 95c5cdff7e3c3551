"""CLI entry point for the latencylog tool."""

import dataclasses
import logging
import sys

import click

from latencylog.address import ParseError, build_target
from latencylog.config import ConfigError, load_config, parse_duration, validate
from latencylog.output import render
from latencylog.runner import build_context, run
from latencylog.sinks import SinkError

logger = logging.getLogger(__name__)

FORMATS = ("table", "json")


class DurationType(click.ParamType):
    """Click parameter for spans like ``500ms``, ``30s``, ``5m``, ``1h``."""

    name = "duration"

    def convert(self, value, param, ctx):
        if isinstance(value, float):
            return value
        try:
            return parse_duration(value)
        except ConfigError as exc:
            self.fail(str(exc), param, ctx)


DURATION = DurationType()


@click.command()
@click.option("--tcp-address", help="TCP target as host:port.")
@click.option("--web-address", help="HTTP(S) target URL.")
@click.option(
    "--dns-server-address",
    help="DNS resolver as host[:port] (port defaults to 53).",
)
@click.option(
    "--resolve-address",
    help="Name (or IP) to query the DNS resolver for.",
)
@click.option(
    "--duration",
    "-d",
    type=DURATION,
    default=None,
    help="How long to sample for, e.g. 30s or 5m.  [default: 1m]",
)
@click.option(
    "--interval",
    "-i",
    type=DURATION,
    default=None,
    help="Time between probes.  [default: 1s]",
)
@click.option(
    "--timeout",
    type=DURATION,
    default=None,
    help="Per-probe connect/read timeout.  [default: 5s]",
)
@click.option(
    "--drain",
    type=DURATION,
    default=None,
    help="Wait this long after the deadline for in-flight probes.  [default: 0s]",
)
@click.option("--influx-url", help="InfluxDB base URL for the post-run row export.")
@click.option("--influx-db", "influx_database", help="InfluxDB database name.")
@click.option("--influx-user", "influx_username", help="InfluxDB user.")
@click.option(
    "--influx-password",
    "influx_password",
    envvar="LATENCYLOG_INFLUX_PASSWORD",
    help="InfluxDB password (or $LATENCYLOG_INFLUX_PASSWORD).",
)
@click.option("--relay-url", help="POST every probe result as JSON to this URL.")
@click.option(
    "--insecure",
    is_flag=True,
    default=False,
    help="Skip TLS certificate verification.",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    default="table",
    type=click.Choice(FORMATS, case_sensitive=False),
    show_default=True,
    help="Format of the post-run report.",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    type=click.Path(exists=False),
    help="Path to YAML config file (default: ~/.latencylog/config.yaml).",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Debug logging.")
def main(
    tcp_address: str | None,
    web_address: str | None,
    dns_server_address: str | None,
    resolve_address: str | None,
    duration: float | None,
    interval: float | None,
    timeout: float | None,
    drain: float | None,
    influx_url: str | None,
    influx_database: str | None,
    influx_username: str | None,
    influx_password: str | None,
    relay_url: str | None,
    insecure: bool,
    output_format: str,
    config_path: str | None,
    verbose: bool,
) -> None:
    """Measure connection latency to one TCP, HTTP or DNS target over time."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s: %(message)s",
    )

    try:
        target = build_target(
            tcp_address=tcp_address,
            web_address=web_address,
            dns_server_address=dns_server_address,
            resolve_address=resolve_address,
        )
    except ParseError as exc:
        raise click.UsageError(str(exc)) from exc

    try:
        cfg = load_config(config_path)
    except (ConfigError, FileNotFoundError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    overrides = {
        "duration": duration,
        "interval": interval,
        "timeout": timeout,
        "drain": drain,
        "influx_url": influx_url,
        "influx_database": influx_database,
        "influx_username": influx_username,
        "influx_password": influx_password,
        "relay_url": relay_url,
    }
    cfg = dataclasses.replace(
        cfg, **{k: v for k, v in overrides.items() if v is not None}
    )
    if insecure:
        cfg.verify_tls = False

    try:
        validate(cfg)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    logger.debug("Config loaded: %s", dataclasses.replace(cfg, influx_password="***"))

    context = build_context(target, cfg)
    logger.info("Running for: %gs", cfg.duration)

    try:
        outcome = run(context)
    except SinkError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    render(outcome, target, output_format.lower())
