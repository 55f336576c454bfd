"""Resolve the address media players should use to reach the stream server."""

from __future__ import annotations

import ipaddress
import socket

import psutil

from dlnatitles.core.config import DEFAULT_STREAM_PORT, ServerConfig

LOOPBACK_HOST = "127.0.0.1"

_WILDCARD_HOSTS = {"0.0.0.0", "::", "[::]"}


def _usable_address(address: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    # IPv6 link-local addresses carry a zone suffix ("fe80::1%eth0")
    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return None
    if ip.is_loopback or ip.is_link_local or ip.is_unspecified or ip.is_multicast:
        return None
    return ip


def interface_host() -> str | None:
    """First non-loopback, non-link-local address of an up interface.

    IPv4 addresses are preferred over IPv6 ones.
    """
    try:
        addresses = psutil.net_if_addrs()
        stats = psutil.net_if_stats()
    except OSError:
        return None

    first_ipv6 = None
    for name, addrs in addresses.items():
        stat = stats.get(name)
        if stat is not None and not stat.isup:
            continue
        for addr in addrs:
            if addr.family not in (socket.AF_INET, socket.AF_INET6):
                continue
            ip = _usable_address(addr.address)
            if ip is None:
                continue
            if ip.version == 4:
                return str(ip)
            if first_ipv6 is None:
                first_ipv6 = str(ip)
    return first_ipv6


def stream_host(server: ServerConfig) -> str:
    """Pick the stream host: public address, bind address, interface, loopback."""
    host = (server.public_host or "").strip()
    if host:
        return host
    host = (server.bind_host or "").strip()
    if host and host not in _WILDCARD_HOSTS:
        return host
    return interface_host() or LOOPBACK_HOST


def stream_base_url(server: ServerConfig) -> str:
    """Return "<scheme>://<host>:<port>" for the stream server."""
    host = stream_host(server).strip("[]")
    if ":" in host:
        host = f"[{host}]"
    port = server.port if server.port > 0 else DEFAULT_STREAM_PORT
    return f"{server.scheme}://{host}:{port}"
