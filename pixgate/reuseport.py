"""TCP listening sockets with optional SO_REUSEPORT."""

from __future__ import annotations

import logging
import socket

logger = logging.getLogger(__name__)

_FAMILIES = {
    "tcp": socket.AF_UNSPEC,
    "tcp4": socket.AF_INET,
    "tcp6": socket.AF_INET6,
}


def _split_host_port(address: str) -> tuple[str, int]:
    if address.startswith("["):
        end = address.find("]")
        if end < 0 or address[end + 1:end + 2] != ":":
            raise ValueError(f"missing port in address {address}")
        host, port = address[1:end], address[end + 2:]
    else:
        host, sep, port = address.rpartition(":")
        if not sep:
            raise ValueError(f"missing port in address {address}")
        if ":" in host:
            raise ValueError(f"too many colons in address {address}")

    if not port:
        return host, 0
    if port.isdigit():
        number = int(port)
    else:
        try:
            number = socket.getservbyname(port, "tcp")
        except OSError:
            raise ValueError(f"unknown port {port}") from None
    if not 0 <= number <= 65535:
        raise ValueError(f"invalid port {port}")
    return host, number


def listen(network: str, address: str, reuseport: bool) -> socket.socket:
    """Open a listening TCP socket on ``address`` (``host:port``)."""
    if network not in _FAMILIES:
        raise ValueError(f"unknown network {network}")

    host, port = _split_host_port(address)

    if reuseport and not hasattr(socket, "SO_REUSEPORT"):
        logger.warning("SO_REUSEPORT support is not implemented for your OS")
        reuseport = False

    family = _FAMILIES[network]

    if not host:
        if family == socket.AF_UNSPEC:
            if socket.has_dualstack_ipv6():
                return socket.create_server(
                    ("", port),
                    family=socket.AF_INET6,
                    reuse_port=reuseport,
                    dualstack_ipv6=True,
                )
            family = socket.AF_INET
        return socket.create_server(("", port), family=family, reuse_port=reuseport)

    infos = socket.getaddrinfo(host, port, family, socket.SOCK_STREAM, 0, socket.AI_PASSIVE)
    resolved_family, _, _, _, sockaddr = infos[0]
    return socket.create_server(sockaddr, family=resolved_family, reuse_port=reuseport)