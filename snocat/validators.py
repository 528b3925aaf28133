"""Parsers and validators for command-line style address and port arguments."""

from __future__ import annotations

import ipaddress
import os
import socket
from typing import NamedTuple

IpAddr = ipaddress.IPv4Address | ipaddress.IPv6Address


class SocketAddr(NamedTuple):
    """An IP address with a port."""

    ip: IpAddr
    port: int


def _parse_u16(text: str) -> int | None:
    digits = text[1:] if text.startswith("+") else text
    if not digits or not digits.isascii() or not digits.isdigit():
        return None
    value = int(digits)
    return value if value <= 0xFFFF else None


def _parse_literal_socketaddr(v: str) -> SocketAddr | None:
    host, sep, port_text = v.rpartition(":")
    if not sep:
        return None
    port = _parse_u16(port_text)
    if port is None:
        return None
    try:
        if host.startswith("[") and host.endswith("]"):
            return SocketAddr(ipaddress.IPv6Address(host[1:-1]), port)
        return SocketAddr(ipaddress.IPv4Address(host), port)
    except ValueError:
        return None


def validate_existing_file(v: str) -> None:
    """Raise :class:`ValueError` unless something exists at path ``v``."""
    if not os.path.exists(v):
        raise ValueError("A file must exist at the given path")


def parse_socketaddr(v: str) -> SocketAddr:
    """Parse ``host:port``, resolving the host name if it is not a literal address."""
    literal = _parse_literal_socketaddr(v)
    if literal is not None:
        return literal
    host, sep, port_text = v.rpartition(":")
    if not sep:
        raise ValueError("invalid socket address")
    port = _parse_u16(port_text)
    if port is None:
        raise ValueError("invalid port value")
    try:
        infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError) as error:
        raise ValueError(str(error)) from error
    for *_, sockaddr in infos:
        address = str(sockaddr[0]).split("%", 1)[0]
        try:
            return SocketAddr(ipaddress.ip_address(address), int(sockaddr[1]))
        except ValueError:
            continue
    raise ValueError("No addresses were resolved from the given host")


def parse_ipaddr(v: str) -> IpAddr:
    """Parse an IPv4 address, or failing that an IPv6 address."""
    try:
        return ipaddress.IPv4Address(v)
    except ValueError:
        pass
    if "%" not in v:
        try:
            return ipaddress.IPv6Address(v)
        except ValueError:
            pass
    raise ValueError("Could not parse input as ipv4 or ipv6 address")


def parse_port_range(v: str) -> tuple[int, int]:
    """Parse ``start:end`` into an inclusive ``(start, end)`` pair of ports."""
    start_text, sep, end_text = v.partition(":")
    if not sep:
        raise ValueError("Could not match ':' in port range string")
    start, end = _parse_u16(start_text), _parse_u16(end_text)
    if start is None and end is None:
        raise ValueError("Range components were not valid u16s")
    if start is None:
        raise ValueError("Range start component was not a valid u16")
    if end is None:
        raise ValueError("Range end component was not a valid u16")
    return start, end


def validate_socketaddr(v: str) -> None:
    """Raise :class:`ValueError` unless ``v`` parses as a socket address."""
    parse_socketaddr(v)


def validate_ipaddr(v: str) -> None:
    """Raise :class:`ValueError` unless ``v`` parses as an IP address."""
    parse_ipaddr(v)


def validate_port_range(v: str) -> None:
    """Raise :class:`ValueError` unless ``v`` parses as a port range."""
    parse_port_range(v)