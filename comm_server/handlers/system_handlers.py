"""Handlers for messaging, statistics and directory listing commands."""

import logging
from pathlib import Path
from typing import Optional

from comm_server.domain.commands import ChatCommand
from comm_server.domain.correlation_id import CorrelationLoggerAdapter
from comm_server.domain.errors import NotFound
from comm_server.domain.rate_limiter import SlidingWindowRateLimiter
from comm_server.domain.response_builders import (
    CommandResponse,
    line_response,
    listing_response,
    stats_response,
)
from comm_server.handlers.file_ops import list_directory

SYSTEM_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("comm_server.handlers.system"), {}
)


def handle_chat(command: ChatCommand, client_ip: str) -> CommandResponse:
    """Acknowledge a COMM message, rejecting blank text."""
    text = command.text.strip()
    if not text:
        return line_response(400, "Message cannot be empty")
    SYSTEM_LOGGER.info(
        "Message received",
        extra={"event": "chat_received", "client": client_ip, "bytes_in": len(text)},
    )
    return line_response(200, f"Server received: {text}")


def handle_info(
    rate_limiter: Optional[SlidingWindowRateLimiter], client_ip: str
) -> CommandResponse:
    stats = rate_limiter.stats(client_ip) if rate_limiter is not None else None
    if SYSTEM_LOGGER.logger.isEnabledFor(logging.DEBUG):
        SYSTEM_LOGGER.debug(
            "Statistics requested",
            extra={"event": "info_request", "client": client_ip},
        )
    return stats_response(stats)


def handle_list(storage_root: Path) -> CommandResponse:
    """List the storage directory, or 404 when it is missing or empty."""
    if not storage_root.is_dir():
        raise NotFound("Server directory not found")
    entries = list_directory(storage_root)
    if not entries:
        raise NotFound("No files found in the server folder")
    return listing_response(storage_root, [entry.describe() for entry in entries])
