"""Worker thread logic for handling individual client connections."""

import logging
import socket
import threading

from comm_server.domain.correlation_id import (
    CorrelationLoggerAdapter,
    clear_correlation_id,
    generate_correlation_id,
    set_correlation_id,
)
from comm_server.domain.errors import ProtocolError, RequestTimeout
from comm_server.domain.response_builders import (
    CommandResponse,
    error_response,
    timeout_response,
)
from comm_server.pipeline.io import receive_command, send_response
from comm_server.pipeline.rate_limiting import apply_rate_limit
from comm_server.transport.connection import Connection
from comm_server.transport.context import WorkerContext

WORKER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("comm_server.transport.worker"), {}
)


def _framing_failure(
    error: ProtocolError, connection: Connection, context: WorkerContext
) -> CommandResponse:
    WORKER_LOGGER.warning(
        "Command could not be framed",
        extra={
            "event": "framing_error",
            "client": connection.peer,
            "connection_id": connection.id,
            "status_code": error.status_code,
            "error_type": type(error).__name__,
        },
    )
    if context.access_log is not None:
        context.access_log.record(
            connection.source_address, "UNKNOWN", error.status_code, error.message
        )
    return error_response(error)


def _serve_connection(
    client_socket: socket.socket, connection: Connection, context: WorkerContext
) -> None:
    """Run commands strictly in order until the connection should end."""
    lifecycle = context.lifecycle
    while lifecycle is None or not lifecycle.is_draining():
        set_correlation_id(generate_correlation_id())
        try:
            command = receive_command(
                client_socket, connection.reassembler, context.config.idle_timeout
            )
        except RequestTimeout:
            WORKER_LOGGER.info(
                "Connection idle timeout",
                extra={"event": "idle_timeout", "client": connection.peer},
            )
            send_response(client_socket, timeout_response())
            return
        except ProtocolError as error:
            response = _framing_failure(error, connection, context)
            send_response(client_socket, response)
            if response.close_connection:
                return
            continue

        if command is None:
            if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
                WORKER_LOGGER.debug(
                    "Client closed the connection",
                    extra={"event": "client_disconnected", "client": connection.peer},
                )
            return

        WORKER_LOGGER.debug(
            "Command parsed",
            extra={
                "event": "command_parsed",
                "command": command.method,
                "connection_id": connection.id,
            },
        )
        response = apply_rate_limit(
            context.rate_limiter, connection.source_address, command, context.access_log
        )
        if response is None:
            response = context.dispatcher.dispatch(command, connection.source_address)
        send_response(client_socket, response)
        WORKER_LOGGER.debug(
            "Command complete",
            extra={
                "event": "command_complete",
                "command": command.method,
                "status_code": response.status_code,
            },
        )
        clear_correlation_id()
        if response.close_connection:
            return


def _close_socket(client_socket: socket.socket) -> None:
    try:
        client_socket.shutdown(socket.SHUT_WR)
    except OSError:
        pass
    client_socket.close()


def handle_client(
    client_socket: socket.socket,
    client_address: tuple,
    context: WorkerContext,
) -> None:
    """Process commands on a client socket until it closes."""
    connection = Connection.accept(client_address, context.config)
    current_thread = threading.current_thread()
    if context.lifecycle is not None:
        context.lifecycle.register_worker(current_thread)

    try:
        _serve_connection(client_socket, connection, context)
    except (ConnectionError, OSError) as error:
        WORKER_LOGGER.error(
            "Transport error on client connection",
            extra={
                "event": "connection_error",
                "client": connection.peer,
                "error_type": type(error).__name__,
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": connection.peer,
                "error_type": type(error).__name__,
            },
            exc_info=True,
        )
    finally:
        if context.lifecycle is not None:
            context.lifecycle.cleanup_worker(current_thread)
        _close_socket(client_socket)
        WORKER_LOGGER.debug(
            "Socket closed",
            extra={
                "event": "socket_closed",
                "client": connection.peer,
                "connection_id": connection.id,
            },
        )
        clear_correlation_id()
