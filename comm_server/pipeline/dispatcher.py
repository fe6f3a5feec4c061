"""Map complete commands onto handlers and protocol responses."""

import logging
from pathlib import Path
from typing import Optional, Union

from comm_server.domain.commands import (
    TRANSFER_DELETE,
    TRANSFER_GET,
    TRANSFER_POST,
    ChatCommand,
    Command,
    InfoCommand,
    ListCommand,
    TransferCommand,
)
from comm_server.domain.correlation_id import CorrelationLoggerAdapter
from comm_server.domain.errors import MethodNotSupported, ProtocolError
from comm_server.domain.rate_limiter import SlidingWindowRateLimiter
from comm_server.domain.response_builders import CommandResponse, error_response
from comm_server.handlers.file_handler import handle_delete, handle_get, handle_post
from comm_server.handlers.system_handlers import handle_chat, handle_info, handle_list
from comm_server.security.access_log import AccessLog

DISPATCH_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("comm_server.pipeline.dispatcher"), {}
)


class CommandDispatcher:
    """Routes commands to handlers and converts failures into responses.

    ``serve_root`` is where GET reads from; ``storage_root`` receives
    uploads, GET mirrors and deletes, and is what GET_LIST enumerates.
    """

    def __init__(
        self,
        serve_root: Union[str, Path],
        storage_root: Union[str, Path],
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        access_log: Optional[AccessLog] = None,
    ) -> None:
        self.serve_root = Path(serve_root).expanduser()
        self.storage_root = Path(storage_root).expanduser()
        self._rate_limiter = rate_limiter
        self._access_log = access_log

    def dispatch(self, command: Command, client_ip: str) -> CommandResponse:
        try:
            response = self._route(command, client_ip)
        except ProtocolError as error:
            DISPATCH_LOGGER.warning(
                "Command failed",
                extra={
                    "event": "command_failed",
                    "client": client_ip,
                    "command": command.method,
                    "status_code": error.status_code,
                    "error_type": type(error).__name__,
                },
            )
            response = error_response(error)
        except Exception:  # pylint: disable=broad-except
            DISPATCH_LOGGER.error(
                "Unexpected error while dispatching",
                extra={
                    "event": "dispatch_error",
                    "client": client_ip,
                    "command": command.method,
                },
                exc_info=True,
            )
            response = error_response(ProtocolError())

        if self._access_log is not None:
            note = command.path if isinstance(command, TransferCommand) else "Done"
            self._access_log.record(
                client_ip, command.method, response.status_code, note or "**"
            )
        return response

    def _route(self, command: Command, client_ip: str) -> CommandResponse:
        if isinstance(command, ChatCommand):
            return handle_chat(command, client_ip)
        if isinstance(command, InfoCommand):
            return handle_info(self._rate_limiter, client_ip)
        if isinstance(command, ListCommand):
            return handle_list(self.storage_root)
        if isinstance(command, TransferCommand):
            if DISPATCH_LOGGER.logger.isEnabledFor(logging.DEBUG):
                DISPATCH_LOGGER.debug(
                    "Transfer matched",
                    extra={
                        "event": "route_matched",
                        "command": command.method,
                        "path": command.path,
                    },
                )
            if command.method == TRANSFER_GET:
                return handle_get(command, self.serve_root, self.storage_root)
            if command.method == TRANSFER_POST:
                return handle_post(command, self.storage_root)
            if command.method == TRANSFER_DELETE:
                return handle_delete(command, self.storage_root)
        raise MethodNotSupported()
