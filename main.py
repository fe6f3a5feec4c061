"""Command server: messaging, file transfer and statistics over one TCP port."""

import logging
import signal
import sys
from typing import Optional

from comm_server.bootstrap.config import build_server_config, parse_cli_args
from comm_server.bootstrap.logging_setup import configure_logging
from comm_server.domain.correlation_id import CorrelationLoggerAdapter
from comm_server.lifecycle.state import ServerLifecycle
from comm_server.transport.accept_loop import run_server

SERVER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("comm_server.server"), {})


def main(argv: Optional[list[str]] = None) -> None:
    """Start the server and serve until SIGTERM or SIGINT."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.log_level, args.log_destination, args.log_format == "json")

    config = build_server_config(args)
    lifecycle = ServerLifecycle()

    def shutdown_handler(signum: int, _frame) -> None:
        SERVER_LOGGER.info(
            "Received shutdown signal", extra={"event": "signal", "signal": signum}
        )
        lifecycle.begin_draining()

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    SERVER_LOGGER.info(
        "Starting command server",
        extra={
            "event": "server_starting",
            "host": args.host,
            "port": args.port,
            "serve_directory": args.serve_directory,
            "storage_directory": args.storage_directory,
            "log_destination": args.log_destination,
            "log_level": args.log_level,
            "idle_timeout": config.idle_timeout,
            "shutdown_grace_seconds": config.shutdown_grace_seconds,
        },
    )
    run_server(args, config, lifecycle)


if __name__ == "__main__":
    main()
