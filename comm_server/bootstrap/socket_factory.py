"""Listening socket creation."""

import logging
import socket
import sys

from comm_server.bootstrap.config import EXIT_BIND_FAILURE
from comm_server.domain.correlation_id import CorrelationLoggerAdapter

SOCKET_LOGGER = CorrelationLoggerAdapter(logging.getLogger("comm_server.socket"), {})

ACCEPT_POLL_SECONDS = 0.5


def create_server_socket(host: str, port: int) -> socket.socket:
    """Bind the listener, exiting with ``EXIT_BIND_FAILURE`` when that fails.

    IPv6 hosts get a dual-stack socket where the platform supports it, so
    IPv4 clients show up as IPv4-mapped addresses.
    """
    try:
        if ":" in host:
            dualstack = socket.has_dualstack_ipv6()
            server_socket = socket.create_server(
                (host, port), family=socket.AF_INET6, dualstack_ipv6=dualstack
            )
        else:
            server_socket = socket.create_server((host, port), reuse_port=False)
    except OSError as error:
        SOCKET_LOGGER.critical(
            "Failed to bind listener",
            extra={
                "event": "bind_failed",
                "host": host,
                "port": port,
                "error_type": type(error).__name__,
                "exit_code": EXIT_BIND_FAILURE,
            },
        )
        sys.exit(EXIT_BIND_FAILURE)
    server_socket.settimeout(ACCEPT_POLL_SECONDS)
    return server_socket
