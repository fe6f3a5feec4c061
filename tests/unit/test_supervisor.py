"""Unit tests for the restarting supervisor."""

import sys
from unittest.mock import MagicMock

from comm_server.bootstrap.config import EXIT_BIND_FAILURE
from comm_server.lifecycle.supervisor import (
    Supervisor,
    build_server_command,
    parse_supervisor_args,
)


def _process(exit_code: int) -> MagicMock:
    process = MagicMock()
    process.wait.return_value = exit_code
    process.poll.return_value = exit_code
    return process


def _supervisor(exit_codes: list[int], **kwargs) -> tuple[Supervisor, MagicMock]:
    popen = MagicMock(side_effect=[_process(code) for code in exit_codes])
    sleep = MagicMock()
    supervisor = Supervisor(["server"], popen=popen, sleep=sleep, **kwargs)
    return supervisor, sleep


def test_crash_is_followed_by_restart() -> None:
    supervisor, sleep = _supervisor([1, 0], restart_delay=0.5)

    assert supervisor.run() == 0
    assert supervisor.restarts == 1
    sleep.assert_called_once_with(0.5)


def test_bind_failure_is_not_retried() -> None:
    supervisor, sleep = _supervisor([EXIT_BIND_FAILURE])

    assert supervisor.run() == EXIT_BIND_FAILURE
    assert supervisor.restarts == 0
    sleep.assert_not_called()


def test_restart_limit_stops_supervision() -> None:
    supervisor, _ = _supervisor([1, 1, 1], max_restarts=2)

    assert supervisor.run() == 1
    assert supervisor.restarts == 2


def test_stop_terminates_child_without_restart() -> None:
    child = MagicMock()
    child.poll.return_value = None
    supervisor = Supervisor(["server"], popen=MagicMock(return_value=child))

    def wait_then_stop():
        supervisor.stop()
        return -15

    child.wait.side_effect = wait_then_stop

    assert supervisor.run() == -15
    child.terminate.assert_called_once()
    assert supervisor.restarts == 0


def test_server_arguments_are_forwarded() -> None:
    args = parse_supervisor_args(["--max-restarts", "2", "--", "--port", "1"])
    command = build_server_command(args.server_args)

    assert args.max_restarts == 2
    assert command[:3] == [sys.executable, "-m", "main"]
    assert command[-2:] == ["--port", "1"]
    assert "--" not in command
