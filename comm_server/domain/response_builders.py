"""Pure response builders for the command protocol."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from comm_server.domain.errors import ProtocolError, RateLimited, RequestTimeout
from comm_server.domain.rate_limiter import ConnectionStats

STATUS_REASONS = {
    200: "OK",
    400: "Bad Request",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    408: "Request Timeout",
    413: "Payload Too Large",
    429: "Too Many Requests",
    500: "Internal Server Error",
}


@dataclass
class CommandResponse:
    """A reply to one command.

    Envelope responses are serialized with an HTTP-like status line and
    headers; bare responses are written as ``body`` alone.
    """

    status_code: int
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)
    close_connection: bool = False
    envelope: bool = True


def reason_phrase(status_code: int) -> str:
    return STATUS_REASONS.get(status_code, "Unknown")


def text_response(
    status_code: int,
    message: str,
    content_type: str = "text/plain",
    close_connection: bool = False,
) -> CommandResponse:
    """Return an envelope response carrying a text body."""
    return CommandResponse(
        status_code,
        message.encode(),
        {"Content-Type": content_type},
        close_connection,
    )


def line_response(status_code: int, message: str) -> CommandResponse:
    """Return a bare ``<code> <message>`` line, as used by COMM."""
    return CommandResponse(
        status_code, f"{status_code} {message}\r\n".encode(), envelope=False
    )


def error_response(error: ProtocolError) -> CommandResponse:
    """Map a protocol error onto its status code and message."""
    return text_response(
        error.status_code, error.message, close_connection=error.closes_connection
    )


def attachment_response(filename: str, payload: bytes) -> CommandResponse:
    """Return a file body as an octet-stream attachment."""
    headers = {
        "Content-Type": "application/octet-stream",
        "Content-Disposition": f'attachment; filename="{filename}"',
    }
    return CommandResponse(200, payload, headers)


def stats_response(stats: Optional[ConnectionStats]) -> CommandResponse:
    """Render connection statistics as a bare multi-line block."""
    if stats is None:
        return text_response(404, "No statistics recorded for this client")
    lines = [
        f"IP Address: {stats.ip}",
        f"First Seen: {stats.first_seen}",
        f"Total Requests: {stats.total_requests}",
        f"Last Request: {stats.last_request}",
        f"Current Window Requests: {stats.current_window_requests}",
    ]
    return CommandResponse(200, ("\r\n".join(lines) + "\r\n").encode(), envelope=False)


def rate_limited_response() -> CommandResponse:
    """Produce the 429 reply that always closes the connection."""
    return error_response(RateLimited())


def timeout_response() -> CommandResponse:
    """Produce the 408 reply sent before closing an idle connection."""
    return error_response(RequestTimeout())


def listing_response(directory: Path, lines: list[str]) -> CommandResponse:
    """Return the storage listing with its header line."""
    header = f"Files in '{directory.name}' folder:"
    return text_response(200, "\n".join([header, *lines]))
