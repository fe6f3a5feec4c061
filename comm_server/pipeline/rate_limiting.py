"""Admission control applied before every dispatched command."""

import logging
from typing import Optional

from comm_server.domain.commands import Command, TransferCommand
from comm_server.domain.correlation_id import CorrelationLoggerAdapter
from comm_server.domain.rate_limiter import SlidingWindowRateLimiter
from comm_server.domain.response_builders import CommandResponse, rate_limited_response
from comm_server.security.access_log import AccessLog

LIMITER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("comm_server.pipeline.rate_limiting"), {}
)


def _access_note(command: Command) -> str:
    if isinstance(command, TransferCommand):
        return command.path or "**"
    return "**"


def apply_rate_limit(
    rate_limiter: Optional[SlidingWindowRateLimiter],
    client_ip: str,
    command: Command,
    access_log: Optional[AccessLog] = None,
) -> Optional[CommandResponse]:
    """Admit ``command`` for ``client_ip`` or return the 429 reply to send.

    A rejected attempt is not recorded in the client's window, so the
    client regains capacity as soon as older requests age out.
    """
    if rate_limiter is None:
        return None

    if rate_limiter.admit(client_ip):
        if access_log is not None:
            access_log.record(
                client_ip, command.method, "ACCEPTED", _access_note(command)
            )
        if LIMITER_LOGGER.logger.isEnabledFor(logging.DEBUG):
            LIMITER_LOGGER.debug(
                "Rate limit check passed",
                extra={"event": "rate_limit_allowed", "client": client_ip},
            )
        return None

    if access_log is not None:
        access_log.record(client_ip, command.method, "RATE_LIMITED", "OverFlow")
    LIMITER_LOGGER.warning(
        "Rate limit enforced",
        extra={
            "event": "rate_limit_enforced",
            "client": client_ip,
            "command": command.method,
        },
    )
    return rate_limited_response()
