"""Unit tests for response builders, serialization and socket reads."""

import socket
from unittest.mock import Mock

import pytest

from comm_server.domain.commands import ChatCommand
from comm_server.domain.errors import (
    IncompleteBody,
    IOFailure,
    MalformedCommand,
    MethodNotSupported,
    NotFound,
    PathEscape,
    PayloadTooLarge,
    RateLimited,
    RequestTimeout,
)
from comm_server.domain.rate_limiter import ConnectionStats
from comm_server.domain.response_builders import (
    attachment_response,
    error_response,
    line_response,
    reason_phrase,
    stats_response,
    text_response,
)
from comm_server.pipeline.io import receive_command, serialize_response
from comm_server.pipeline.reassembler import StreamReassembler


def test_envelope_serialization_is_byte_exact() -> None:
    response = text_response(404, "File nope.txt not found")

    assert serialize_response(response) == (
        b"HTTP/1.1 404 Not Found\r\n"
        b"Content-Type: text/plain\r\n"
        b"Content-Length: 23\r\n"
        b"Connection: close\r\n"
        b"\r\n"
        b"File nope.txt not found"
    )


def test_bare_line_is_written_without_envelope() -> None:
    assert serialize_response(line_response(200, "Server received: hi")) == (
        b"200 Server received: hi\r\n"
    )


def test_attachment_headers_precede_length() -> None:
    wire = serialize_response(attachment_response("a.bin", b"\x00\x01"))
    header_block, body = wire.split(b"\r\n\r\n", 1)

    assert header_block.split(b"\r\n") == [
        b"HTTP/1.1 200 OK",
        b"Content-Type: application/octet-stream",
        b'Content-Disposition: attachment; filename="a.bin"',
        b"Content-Length: 2",
        b"Connection: close",
    ]
    assert body == b"\x00\x01"


@pytest.mark.parametrize(
    ("error", "status", "closes"),
    [
        (MalformedCommand(), 400, True),
        (IncompleteBody(), 400, True),
        (PathEscape(), 403, False),
        (NotFound(), 404, False),
        (MethodNotSupported(), 405, False),
        (RequestTimeout(), 408, True),
        (PayloadTooLarge(), 413, True),
        (RateLimited(), 429, True),
        (IOFailure(), 500, False),
    ],
)
def test_error_response_maps_taxonomy(error, status: int, closes: bool) -> None:
    response = error_response(error)

    assert response.status_code == status
    assert response.close_connection is closes
    assert response.body == error.message.encode()


def test_stats_block_lists_every_field() -> None:
    stats = ConnectionStats(
        ip="10.0.0.1",
        first_seen="2024-01-01T00:00:00.000Z",
        total_requests=3,
        last_request="2024-01-01T00:00:05.000Z",
        current_window_requests=2,
    )

    response = stats_response(stats)

    assert response.envelope is False
    assert response.body == (
        b"IP Address: 10.0.0.1\r\n"
        b"First Seen: 2024-01-01T00:00:00.000Z\r\n"
        b"Total Requests: 3\r\n"
        b"Last Request: 2024-01-01T00:00:05.000Z\r\n"
        b"Current Window Requests: 2\r\n"
    )


def test_unknown_status_has_generic_reason() -> None:
    assert reason_phrase(418) == "Unknown"


def test_receive_command_reassembles_across_reads() -> None:
    mock_socket = Mock(spec=socket.socket)
    mock_socket.recv.side_effect = [b"COMM he", b"llo\n"]

    command = receive_command(mock_socket, StreamReassembler(), idle_timeout=2.5)

    assert command == ChatCommand("hello")
    mock_socket.settimeout.assert_called_with(2.5)


def test_receive_command_translates_socket_timeout() -> None:
    mock_socket = Mock(spec=socket.socket)
    mock_socket.recv.side_effect = socket.timeout()

    with pytest.raises(RequestTimeout):
        receive_command(mock_socket, StreamReassembler(), idle_timeout=0.1)


def test_receive_command_returns_none_at_clean_eof() -> None:
    mock_socket = Mock(spec=socket.socket)
    mock_socket.recv.return_value = b""

    assert receive_command(mock_socket, StreamReassembler()) is None


def test_buffered_command_is_returned_without_reading() -> None:
    mock_socket = Mock(spec=socket.socket)
    reassembler = StreamReassembler()
    reassembler.feed(b"GET_LIST\n")

    receive_command(mock_socket, reassembler)

    mock_socket.recv.assert_not_called()
