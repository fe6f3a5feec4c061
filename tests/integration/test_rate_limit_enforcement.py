"""Integration tests for per-client rate limiting."""

import socket
from typing import TYPE_CHECKING

import pytest

from tests.utils.protocol import ResponseReader

if TYPE_CHECKING:
    from tests.conftest import ServerProcessInfo

pytestmark = pytest.mark.integration


def _connect(server: "ServerProcessInfo") -> socket.socket:
    return socket.create_connection((server["host"], server["port"]), timeout=5)


def test_request_over_limit_gets_429_and_close(
    limited_server_process: "ServerProcessInfo",
) -> None:
    with _connect(limited_server_process) as sock:
        reader = ResponseReader(sock)
        for index in range(3):
            sock.sendall(f"COMM {index}\n".encode())
            assert reader.read_line() == f"200 Server received: {index}\r\n".encode()

        sock.sendall(b"COMM 3\n")
        envelope = reader.read_envelope()

        assert envelope.status_line == "HTTP/1.1 429 Too Many Requests"
        assert envelope.body == b"Too Many Requests"
        assert reader.at_eof()


def test_limit_applies_across_connections(
    limited_server_process: "ServerProcessInfo",
) -> None:
    for _ in range(3):
        with _connect(limited_server_process) as sock:
            sock.sendall(b"COMM hi\n")
            ResponseReader(sock).read_line()

    with _connect(limited_server_process) as sock:
        sock.sendall(b"GET_LIST\n")
        envelope = ResponseReader(sock).read_envelope()

    assert envelope.status_code == 429


def test_rejections_are_written_to_access_log(
    limited_server_process: "ServerProcessInfo",
) -> None:
    with _connect(limited_server_process) as sock:
        reader = ResponseReader(sock)
        sock.sendall(b"COMM 1\nCOMM 2\nCOMM 3\nCOMM 4\n")
        reader.read_lines(3)
        reader.read_envelope()

    access_log = limited_server_process["access_log"].read_text(encoding="utf-8")
    assert "Method: COMM :: OverFlow - Status: RATE_LIMITED" in access_log
