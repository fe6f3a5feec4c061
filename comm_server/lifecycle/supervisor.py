"""Restart the server process when it exits abnormally."""

import argparse
import logging
import signal
import subprocess
import sys
import time
from typing import Callable, Optional

from comm_server.bootstrap.config import EXIT_BIND_FAILURE
from comm_server.bootstrap.logging_setup import configure_logging
from comm_server.domain.correlation_id import CorrelationLoggerAdapter

SUPERVISOR_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("comm_server.lifecycle.supervisor"), {}
)

FINAL_EXIT_CODES = {0, EXIT_BIND_FAILURE}


class Supervisor:
    """Run ``command`` as a child process and restart it after crashes.

    A clean exit (0) or a bind failure ends supervision, since restarting
    cannot help either; other exit codes restart after ``restart_delay``.
    """

    def __init__(
        self,
        command: list[str],
        restart_delay: float = 1.0,
        max_restarts: Optional[int] = None,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._command = command
        self._restart_delay = restart_delay
        self._max_restarts = max_restarts
        self._popen = popen
        self._sleep = sleep
        self._child: Optional[subprocess.Popen] = None
        self._stopping = False
        self.restarts = 0

    def stop(self) -> None:
        """Stop supervising and forward termination to the running child."""
        self._stopping = True
        if self._child is not None and self._child.poll() is None:
            self._child.terminate()

    def run(self) -> int:
        while True:
            self._child = self._popen(self._command)
            exit_code = self._child.wait()
            if self._stopping or exit_code in FINAL_EXIT_CODES:
                SUPERVISOR_LOGGER.info(
                    "Server exited; supervision finished",
                    extra={"event": "supervision_finished", "exit_code": exit_code},
                )
                return exit_code
            if self._max_restarts is not None and self.restarts >= self._max_restarts:
                SUPERVISOR_LOGGER.critical(
                    "Restart limit reached",
                    extra={
                        "event": "restart_limit_reached",
                        "exit_code": exit_code,
                        "restarts": self.restarts,
                    },
                )
                return exit_code
            self.restarts += 1
            SUPERVISOR_LOGGER.warning(
                "Server stopped; restarting",
                extra={
                    "event": "server_restarting",
                    "exit_code": exit_code,
                    "restarts": self.restarts,
                },
            )
            self._sleep(self._restart_delay)


def parse_supervisor_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the command server and restart it when it crashes"
    )
    parser.add_argument("--restart-delay", type=float, default=1.0)
    parser.add_argument(
        "--max-restarts",
        type=int,
        default=None,
        help="Give up after this many restarts (default: never)",
    )
    parser.add_argument(
        "server_args",
        nargs=argparse.REMAINDER,
        help="Arguments forwarded to the server, after '--'",
    )
    return parser.parse_args(argv)


def build_server_command(server_args: list[str]) -> list[str]:
    if server_args and server_args[0] == "--":
        server_args = server_args[1:]
    return [sys.executable, "-m", "main", *server_args]


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_supervisor_args(sys.argv[1:] if argv is None else argv)
    configure_logging("INFO", "stdout")
    supervisor = Supervisor(
        build_server_command(args.server_args),
        restart_delay=args.restart_delay,
        max_restarts=args.max_restarts,
    )

    def shutdown_handler(_signum: int, _frame) -> None:
        supervisor.stop()

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)
    sys.exit(supervisor.run())


if __name__ == "__main__":
    main()
