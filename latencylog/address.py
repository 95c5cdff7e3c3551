"""Address parsing and name-resolution helpers for probe targets."""

import ipaddress
import logging
import socket
from urllib.parse import urlsplit

from latencylog.models import Protocol, Target

logger = logging.getLogger(__name__)

DEFAULT_PORTS: dict[Protocol, int | None] = {
    Protocol.TCP: None,  # no sensible default; a port is required
    Protocol.DNS: 53,
}

_SCHEME_PORTS = {"http": 80, "https": 443}


class ParseError(ValueError):
    """Raised when an address string cannot be turned into a target."""


def parse_host_port(text: str, default_port: int | None = None) -> tuple[str, int]:
    """Split ``host[:port]`` into a ``(host, port)`` pair.

    IPv6 literals must be bracketed when a port is given
    (``[2001:db8::1]:53``); a bare IPv6 literal is accepted when no port
    follows.

    Args:
        text: The address as typed by the user.
        default_port: Port to use when *text* carries none.  ``None``
            means a port is mandatory.

    Returns:
        A ``(host, port)`` tuple with brackets stripped from IPv6 hosts.

    Raises:
        ParseError: On empty input, a missing mandatory port, or a port
            that is not an integer in ``1..65535``.
    """
    text = text.strip()
    if not text:
        raise ParseError("empty address")

    host: str
    port_text: str | None

    if text.startswith("["):
        end = text.find("]")
        if end == -1:
            raise ParseError(f"unterminated IPv6 literal in {text!r}")
        host = text[1:end]
        rest = text[end + 1 :]
        if rest and not rest.startswith(":"):
            raise ParseError(f"unexpected text after IPv6 literal in {text!r}")
        port_text = rest[1:] if rest else None
    elif text.count(":") > 1:
        # Unbracketed IPv6 literal, no port possible.
        host, port_text = text, None
    elif ":" in text:
        host, port_text = text.split(":", 1)
    else:
        host, port_text = text, None

    if not host:
        raise ParseError(f"missing host in {text!r}")

    if port_text is None:
        if default_port is None:
            raise ParseError(f"port required in {text!r} (expected host:port)")
        return host, default_port
    if not port_text:
        raise ParseError(f"missing port after ':' in {text!r}")

    return host, _parse_port(port_text, text)


def parse_url(text: str) -> tuple[str, str, int]:
    """Validate an HTTP(S) URL and return ``(url, host, port)``.

    A URL without a scheme is treated as ``http://``.  The port defaults
    to 80 or 443 depending on the scheme.

    Raises:
        ParseError: If the scheme is not http/https, the host is missing,
            or the port is invalid.
    """
    text = text.strip()
    if not text:
        raise ParseError("empty URL")
    if "://" not in text:
        text = f"http://{text}"

    parts = urlsplit(text)
    scheme = parts.scheme.lower()
    if scheme not in _SCHEME_PORTS:
        raise ParseError(f"unsupported URL scheme {parts.scheme!r} in {text!r}")
    if not parts.hostname:
        raise ParseError(f"missing host in URL {text!r}")

    try:
        port = parts.port
    except ValueError as exc:
        raise ParseError(f"invalid port in URL {text!r}") from exc

    return text, parts.hostname, port or _SCHEME_PORTS[scheme]


def is_ip_literal(text: str) -> bool:
    """Return ``True`` if *text* is an IPv4 or IPv6 address literal."""
    try:
        ipaddress.ip_address(text.strip("[]"))
    except ValueError:
        return False
    return True


def build_target(
    tcp_address: str | None = None,
    web_address: str | None = None,
    dns_server_address: str | None = None,
    resolve_address: str | None = None,
) -> Target:
    """Build the single run target from mutually exclusive address options.

    Raises:
        ParseError: If none or more than one target kind is given, if a
            DNS server is given without a name to resolve (or the other
            way round), or if the chosen address is malformed.
    """
    chosen = [
        name
        for name, value in (
            ("tcp-address", tcp_address),
            ("web-address", web_address),
            ("dns-server-address", dns_server_address),
        )
        if value
    ]
    if not chosen:
        raise ParseError(
            "one of --tcp-address, --web-address or --dns-server-address is required"
        )
    if len(chosen) > 1:
        raise ParseError(
            "options are mutually exclusive: " + ", ".join(f"--{c}" for c in chosen)
        )
    if resolve_address and not dns_server_address:
        raise ParseError("--resolve-address requires --dns-server-address")

    if tcp_address:
        host, port = parse_host_port(tcp_address, DEFAULT_PORTS[Protocol.TCP])
        return Target(protocol=Protocol.TCP, host=host, port=port)

    if web_address:
        url, host, port = parse_url(web_address)
        return Target(protocol=Protocol.HTTP, host=host, port=port, url=url)

    if not resolve_address:
        raise ParseError("--dns-server-address requires --resolve-address")
    host, port = parse_host_port(dns_server_address, DEFAULT_PORTS[Protocol.DNS])
    return Target(
        protocol=Protocol.DNS, host=host, port=port, query=resolve_address.strip()
    )


def resolve_all(hostname: str, port: int = 0) -> list[tuple[str, int]]:
    """Resolve a hostname to all A and AAAA records.

    Wraps ``socket.getaddrinfo`` to return deduplicated ``(ip, port)``
    pairs for both IPv4 and IPv6 addresses.

    Raises:
        socket.gaierror: If DNS resolution fails entirely.
    """
    logger.debug("Resolving %s (port=%d)", hostname, port)

    results = socket.getaddrinfo(
        hostname,
        port,
        family=socket.AF_UNSPEC,
        type=socket.SOCK_DGRAM,
    )

    seen: set[tuple[str, int]] = set()
    out: list[tuple[str, int]] = []
    for _family, _type, _proto, _canonname, sockaddr in results:
        # sockaddr is (ip, port) for AF_INET, (ip, port, flow, scope) for AF_INET6
        key = (sockaddr[0], sockaddr[1])
        if key not in seen:
            seen.add(key)
            out.append(key)

    logger.debug("Resolved %s → %d unique address(es)", hostname, len(out))
    return out


def _parse_port(port_text: str, original: str) -> int:
    try:
        port = int(port_text)
    except ValueError as exc:
        raise ParseError(f"invalid port {port_text!r} in {original!r}") from exc
    if not 0 < port < 65536:
        raise ParseError(f"port out of range in {original!r}")
    return port
