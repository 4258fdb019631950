from __future__ import annotations

import ipaddress
import socket

import httpx

from ndconv.errors import UnsafeUrlError

_FORBIDDEN_IP = "Private or local IPs are not allowed"
_LOCALHOST = "Localhost addresses are not allowed"
_UNRESOLVED = "Failed to resolve download host"

_IPv4_BROADCAST = ipaddress.IPv4Address("255.255.255.255")


def is_forbidden_ip(address: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return is_forbidden_ip(address.ipv4_mapped)
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_multicast
        or address.is_unspecified
        or address == _IPv4_BROADCAST
    )


def _is_local_hostname(host: str) -> bool:
    host = host.lower().rstrip(".")
    return host == "localhost" or host.endswith(".localhost") or host.endswith(".local")


def resolve_host(host: str, port: int) -> list[str]:
    infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    return [str(info[4][0]) for info in infos]


def validate_download_url(url: str) -> httpx.URL:
    """Check that ``url`` is an http(s) URL whose host is not local or private.

    Domain names are resolved on every call and every returned address must
    pass; nothing is cached, so a later DNS answer cannot reuse an earlier
    approval. Raises UnsafeUrlError with a human-readable reason.
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as exc:
        raise UnsafeUrlError("Invalid URL") from exc

    if parsed.scheme not in {"http", "https"}:
        raise UnsafeUrlError("Only HTTP/HTTPS URLs are allowed")

    host = parsed.host
    if not host:
        raise UnsafeUrlError("URL must include a hostname")

    try:
        literal = ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        literal = None

    if literal is not None:
        if is_forbidden_ip(literal):
            raise UnsafeUrlError(_FORBIDDEN_IP)
        return parsed

    if _is_local_hostname(host):
        raise UnsafeUrlError(_LOCALHOST)

    port = parsed.port or (443 if parsed.scheme == "https" else 80)
    try:
        addresses = resolve_host(host, port)
    except (OSError, UnicodeError) as exc:
        raise UnsafeUrlError(_UNRESOLVED) from exc
    if not addresses:
        raise UnsafeUrlError(_UNRESOLVED)

    for raw in addresses:
        try:
            address = ipaddress.ip_address(raw.split("%", 1)[0])
        except ValueError as exc:
            raise UnsafeUrlError(_UNRESOLVED) from exc
        if is_forbidden_ip(address):
            raise UnsafeUrlError(_FORBIDDEN_IP)

    return parsed
