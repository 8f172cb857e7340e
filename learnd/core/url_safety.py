"""URL safety guards (SSRF defense) for every outbound enrichment fetch."""

from __future__ import annotations

import asyncio
import ipaddress
import socket
from collections.abc import Awaitable, Callable
from urllib.parse import SplitResult, urlsplit

from learnd.core.errors import InvalidURLError

Resolver = Callable[[str], Awaitable[list[str]]]

_ALLOWED_SCHEMES = {"http", "https"}


def is_blocked_ip(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    """Return True for loopback, private, link-local, multicast, reserved or unspecified IPs."""
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    )


def is_localhost(hostname: str) -> bool:
    host = hostname.strip().lower().rstrip(".")
    return host == "localhost" or host.endswith(".localhost")


async def resolve_host(hostname: str) -> list[str]:
    """Resolve ``hostname`` to every A/AAAA address the system resolver returns."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    return list(dict.fromkeys(str(info[4][0]) for info in infos))


def _parse_ip(value: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    # Scoped IPv6 literals ("fe80::1%eth0") carry a zone id ipaddress cannot parse.
    try:
        return ipaddress.ip_address(value.split("%", 1)[0])
    except ValueError:
        return None


async def resolve_public_url(
    url: str, resolver: Resolver | None = None
) -> tuple[SplitResult, list[str]]:
    """Validate ``url`` against the SSRF rules; return it parsed with its checked addresses.

    Rejects non-http(s) schemes, missing hosts, userinfo, localhost names and
    any destination whose literal or resolved address is non-public. For DNS
    names every resolved address must be public; a resolution failure or an
    empty answer is a rejection too. The returned addresses are the ones a
    caller may connect to without asking DNS again.
    """
    try:
        parsed = urlsplit(str(url or "").strip())
        hostname = parsed.hostname or ""
    except ValueError as exc:
        raise InvalidURLError(f"invalid URL: {exc}") from exc

    if not parsed.scheme or not parsed.netloc:
        raise InvalidURLError("invalid URL: missing scheme or host")
    if parsed.scheme.lower() not in _ALLOWED_SCHEMES:
        raise InvalidURLError("invalid URL: unsupported scheme")
    if "@" in parsed.netloc:
        raise InvalidURLError("invalid URL: userinfo not allowed")
    if not hostname:
        raise InvalidURLError("invalid URL: missing host")
    if is_localhost(hostname):
        raise InvalidURLError("invalid URL: host is not allowed")

    literal = _parse_ip(hostname)
    if literal is not None:
        if is_blocked_ip(literal):
            raise InvalidURLError("invalid URL: host resolves to private IP")
        return parsed, [hostname]

    resolve = resolver or resolve_host
    try:
        addresses = await resolve(hostname)
    except (OSError, UnicodeError) as exc:
        raise InvalidURLError("invalid URL: failed to resolve host") from exc
    if not addresses:
        raise InvalidURLError("invalid URL: host has no addresses")

    for address in addresses:
        ip = _parse_ip(address)
        if ip is None or is_blocked_ip(ip):
            raise InvalidURLError("invalid URL: host resolves to private IP")

    return parsed, list(addresses)


async def validate_public_url(url: str, resolver: Resolver | None = None) -> SplitResult:
    """Raise InvalidURLError unless ``url`` is a public http(s) destination."""
    parsed, _ = await resolve_public_url(url, resolver=resolver)
    return parsed
