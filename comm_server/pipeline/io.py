"""Socket input/output for the command protocol."""

import logging
import socket
from typing import Optional

from comm_server.domain.commands import Command
from comm_server.domain.correlation_id import CorrelationLoggerAdapter
from comm_server.domain.errors import RequestTimeout
from comm_server.domain.response_builders import CommandResponse, reason_phrase
from comm_server.pipeline.reassembler import StreamReassembler

IO_LOGGER = CorrelationLoggerAdapter(logging.getLogger("comm_server.io"), {})

RECV_CHUNK_BYTES = 65536


def receive_command(
    client_socket: socket.socket,
    reassembler: StreamReassembler,
    idle_timeout: Optional[float] = None,
) -> Optional[Command]:
    """Read until the reassembler yields a command.

    Returns None once the peer has closed and nothing is left to frame.
    Raises :class:`RequestTimeout` after ``idle_timeout`` seconds without
    bytes, and framing errors from the reassembler as they occur.
    """
    while True:
        command = reassembler.next_command()
        if command is not None:
            return command
        client_socket.settimeout(idle_timeout)
        try:
            chunk = client_socket.recv(RECV_CHUNK_BYTES)
        except socket.timeout as exc:
            raise RequestTimeout() from exc
        if not chunk:
            return reassembler.finish()
        reassembler.feed(chunk)
        if IO_LOGGER.logger.isEnabledFor(logging.DEBUG):
            IO_LOGGER.debug(
                "Received bytes",
                extra={
                    "event": "bytes_received",
                    "bytes_in": len(chunk),
                    "received_bytes": reassembler.buffered,
                },
            )


def serialize_response(response: CommandResponse) -> bytes:
    """Render a response to wire bytes."""
    if not response.envelope:
        return response.body
    headers = dict(response.headers)
    headers["Content-Length"] = str(len(response.body))
    headers["Connection"] = "close"
    code = response.status_code
    header_lines = [f"HTTP/1.1 {code} {reason_phrase(code)}"]
    header_lines.extend(f"{name}: {value}" for name, value in headers.items())
    return "\r\n".join(header_lines).encode() + b"\r\n\r\n" + response.body


def send_response(client_socket: socket.socket, response: CommandResponse) -> None:
    """Serialize and send the response over the socket."""
    client_socket.sendall(serialize_response(response))
    IO_LOGGER.debug(
        "Sent response",
        extra={"status_code": response.status_code, "bytes_out": len(response.body)},
    )
