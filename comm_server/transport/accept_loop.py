"""Main connection acceptance loop."""

import argparse
import logging
import socket
import threading

from comm_server.bootstrap.config import (
    ServerConfig,
    build_rate_limit_settings,
)
from comm_server.bootstrap.socket_factory import create_server_socket
from comm_server.domain.correlation_id import CorrelationLoggerAdapter
from comm_server.domain.rate_limiter import SlidingWindowRateLimiter
from comm_server.lifecycle.state import ServerLifecycle
from comm_server.lifecycle.sweeper import IdleEntrySweeper
from comm_server.pipeline.dispatcher import CommandDispatcher
from comm_server.security.access_log import AccessLog
from comm_server.transport.context import WorkerContext
from comm_server.transport.worker import handle_client

ACCEPT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("comm_server.transport.accept"), {}
)


def build_worker_context(
    args: argparse.Namespace, config: ServerConfig, lifecycle: ServerLifecycle
) -> WorkerContext:
    """Wire the rate limiter, access log and dispatcher shared by workers."""
    rate_limiter = SlidingWindowRateLimiter(build_rate_limit_settings(args))
    access_log = AccessLog(args.access_log)
    dispatcher = CommandDispatcher(
        args.serve_directory,
        args.storage_directory,
        rate_limiter=rate_limiter,
        access_log=access_log,
    )
    return WorkerContext(
        dispatcher=dispatcher,
        rate_limiter=rate_limiter,
        lifecycle=lifecycle,
        config=config,
        access_log=access_log,
    )


def _handle_accepted_client(
    client_socket: socket.socket,
    client_address: tuple,
    context: WorkerContext,
) -> None:
    """Start a worker thread for a newly accepted connection."""
    if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ACCEPT_LOGGER.debug(
            "Client connection accepted",
            extra={
                "event": "client_accepted",
                "client": f"{client_address[0]}:{client_address[1]}",
            },
        )
    thread = threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, context),
        daemon=True,
    )
    thread.start()


def run_server(
    args: argparse.Namespace, config: ServerConfig, lifecycle: ServerLifecycle
) -> None:
    """Accept connections until the lifecycle asks the server to stop."""
    server_socket = create_server_socket(args.host, args.port)
    ACCEPT_LOGGER.info(
        "Server listening for connections",
        extra={"event": "server_listening", "host": args.host, "port": args.port},
    )

    context = build_worker_context(args, config, lifecycle)
    sweeper = None
    if context.rate_limiter is not None:
        sweeper = IdleEntrySweeper(context.rate_limiter, lifecycle)
        sweeper.start()

    try:
        while not lifecycle.should_stop():
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as error:
                if lifecycle.should_stop():
                    break
                ACCEPT_LOGGER.error(
                    "Socket accept failed",
                    extra={"event": "accept_error", "error_type": type(error).__name__},
                )
                continue
            _handle_accepted_client(client_socket, client_address, context)
    finally:
        server_socket.close()
        lifecycle.begin_draining()
        ACCEPT_LOGGER.info(
            "Waiting for active connections to complete",
            extra={
                "event": "shutdown_waiting",
                "shutdown_grace_seconds": config.shutdown_grace_seconds,
            },
        )
        lifecycle.wait_for_workers(config.shutdown_grace_seconds)
        if sweeper is not None:
            sweeper.join(timeout=1.0)
        if context.access_log is not None:
            context.access_log.close()
        ACCEPT_LOGGER.info(
            "Server shutdown complete", extra={"event": "server_stopped"}
        )
