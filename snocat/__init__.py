"""Asyncio building blocks for network tunnels: framing, proxying, port allocation and stream combinators."""

__version__ = "0.8.0a5"

__all__ = [
    "dropkick",
    "framed",
    "future_ext",
    "port_allocator",
    "proxy",
    "ready",
    "stream_ext",
    "stream_set",
    "tracked",
    "try_stream",
    "tunnel_stream",
    "validators",
]