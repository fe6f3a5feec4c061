"""Incremental framing of the inbound byte stream into commands.

Every command starts with a line. ``COMM``, ``GET_INFO``, ``GET_LIST`` and
bare ``GET``/``DELETE`` lines are complete once their terminator arrives.
``POST``, and ``GET``/``DELETE`` lines that carry an HTTP version, continue
with a header block ended by a blank line and an optional body whose size
comes from ``Content-Length``. Bytes after a complete command stay buffered
for the next one.
"""

import enum
import urllib.parse
from dataclasses import dataclass
from typing import NoReturn, Optional

from comm_server.domain.commands import (
    CHAT_KEYWORD,
    INFO_KEYWORD,
    LIST_KEYWORD,
    TRANSFER_METHODS,
    TRANSFER_POST,
    ChatCommand,
    Command,
    InfoCommand,
    ListCommand,
    TransferCommand,
)
from comm_server.domain.errors import (
    IncompleteBody,
    MalformedCommand,
    MethodNotSupported,
    PayloadTooLarge,
)

HEADER_DELIMITER = b"\r\n\r\n"
LINE_TERMINATOR = b"\n"
COMMAND_SEPARATORS = b" \t\r\n"
HEADER_BLOCK_FACTOR = 8


class FramingState(enum.Enum):
    AWAITING_COMMAND = "awaiting_command"
    AWAITING_BODY_LENGTH = "awaiting_body_length"
    AWAITING_BODY_BYTES = "awaiting_body_bytes"


@dataclass
class _PendingTransfer:
    method: str
    path: str
    headers: Optional[dict[str, str]] = None
    body_start: int = 0


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed = {}
    for line in lines:
        name, separator, value = line.partition(":")
        if separator and name.strip():
            parsed[name.strip().lower()] = value.strip()
    return parsed


def determine_content_length(
    method: str, headers: dict[str, str], max_body_bytes: int
) -> int:
    """Validate and return the declared body length for a transfer."""
    header_value = headers.get("content-length")
    if header_value is None:
        if method == TRANSFER_POST:
            raise MalformedCommand("Content-Length header is required")
        return 0
    if not (header_value.isascii() and header_value.isdigit()):
        raise MalformedCommand("Invalid Content-Length")
    content_length = int(header_value)
    if content_length > max_body_bytes:
        raise PayloadTooLarge(f"Request body exceeds the {max_body_bytes} byte limit")
    return content_length


def _decode_line(raw_line: bytes) -> str:
    try:
        return raw_line.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedCommand("Command line is not valid UTF-8") from exc


def _split_target(rest: str) -> tuple[str, bool]:
    """Return the request path and whether the line is HTTP-style."""
    tokens = rest.split()
    if not tokens:
        return "", False
    target = tokens[0]
    if len(tokens) > 1 and tokens[1].startswith("HTTP/"):
        return urllib.parse.unquote(urllib.parse.urlsplit(target).path), True
    return target, False


class StreamReassembler:
    """Owns one connection's inbound buffer and framing state."""

    def __init__(
        self, max_line_bytes: int = 8192, max_body_bytes: int = 100 * 1024 * 1024
    ) -> None:
        self._max_line_bytes = max_line_bytes
        self._max_body_bytes = max_body_bytes
        self._buffer = bytearray()
        self._pending: Optional[_PendingTransfer] = None
        self.state = FramingState.AWAITING_COMMAND
        self.expected_body_length: Optional[int] = None

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def feed(self, data: bytes) -> None:
        self._buffer.extend(data)

    def next_command(self) -> Optional[Command]:
        """Return the next complete command, or None until more bytes arrive."""
        if self.state is FramingState.AWAITING_COMMAND:
            self._skip_separators()
            line_end = self._buffer.find(LINE_TERMINATOR)
            if line_end == -1:
                if len(self._buffer) > self._max_line_bytes:
                    self._fail(MalformedCommand("Command line too long"))
                return None
            if line_end > self._max_line_bytes:
                self._fail(MalformedCommand("Command line too long"))
            command = self._start_command(line_end)
            if command is not None:
                return command

        if self.state is FramingState.AWAITING_BODY_LENGTH:
            if not self._parse_header_block():
                return None

        if self.state is FramingState.AWAITING_BODY_BYTES:
            return self._take_body()
        return None

    def finish(self) -> Optional[Command]:
        """Complete framing at end-of-stream.

        A final line without terminator is still a command; anything waiting
        for headers or body bytes is an incomplete request.
        """
        if self.state is FramingState.AWAITING_COMMAND:
            self._skip_separators()
            if not self._buffer:
                return None
            self._buffer.extend(LINE_TERMINATOR)
            command = self.next_command()
            if command is not None or self.state is FramingState.AWAITING_COMMAND:
                return command

        if self.state is FramingState.AWAITING_BODY_BYTES:
            assert self._pending is not None
            received = len(self._buffer) - self._pending.body_start
            self._fail(
                IncompleteBody(
                    f"Incomplete request body: expected {self.expected_body_length} "
                    f"bytes, received {received}"
                )
            )
        self._fail(IncompleteBody("Incomplete request headers"))

    def _skip_separators(self) -> None:
        index = 0
        while index < len(self._buffer) and self._buffer[index] in COMMAND_SEPARATORS:
            index += 1
        if index:
            del self._buffer[:index]

    def _start_command(self, line_end: int) -> Optional[Command]:
        raw_line = bytes(self._buffer[:line_end]).rstrip(b"\r")
        try:
            line = _decode_line(raw_line)
        except MalformedCommand as error:
            self._fail(error)
        parts = line.split(None, 1)
        keyword = parts[0] if parts else ""
        rest = parts[1] if len(parts) > 1 else ""

        if keyword in TRANSFER_METHODS:
            path, http_style = _split_target(rest)
            if keyword == TRANSFER_POST or http_style:
                self._pending = _PendingTransfer(keyword, path)
                self.state = FramingState.AWAITING_BODY_LENGTH
                return None
            del self._buffer[: line_end + 1]
            return TransferCommand(keyword, path)

        del self._buffer[: line_end + 1]
        if keyword == CHAT_KEYWORD:
            return ChatCommand(rest.strip())
        if keyword == INFO_KEYWORD:
            return InfoCommand()
        if keyword == LIST_KEYWORD:
            return ListCommand()
        raise MethodNotSupported(f"Method not allowed: {keyword[:32]}")

    def _parse_header_block(self) -> bool:
        assert self._pending is not None
        header_end = self._buffer.find(HEADER_DELIMITER)
        if header_end == -1:
            if len(self._buffer) > self._max_line_bytes * HEADER_BLOCK_FACTOR:
                self._fail(MalformedCommand("Header block too long"))
            return False

        header_lines = bytes(self._buffer[:header_end]).decode("latin-1").split("\r\n")
        headers = parse_headers(header_lines[1:])
        try:
            content_length = determine_content_length(
                self._pending.method, headers, self._max_body_bytes
            )
        except (MalformedCommand, PayloadTooLarge) as error:
            self._fail(error)
        self._pending.headers = headers
        self._pending.body_start = header_end + len(HEADER_DELIMITER)
        self.expected_body_length = content_length
        self.state = FramingState.AWAITING_BODY_BYTES
        return True

    def _take_body(self) -> Optional[Command]:
        pending = self._pending
        assert pending is not None and self.expected_body_length is not None
        body_end = pending.body_start + self.expected_body_length
        if len(self._buffer) < body_end:
            return None
        body = bytes(self._buffer[pending.body_start : body_end])
        del self._buffer[:body_end]
        self._reset()
        return TransferCommand(
            pending.method, pending.path, pending.headers or {}, body
        )

    def _reset(self) -> None:
        self._pending = None
        self.state = FramingState.AWAITING_COMMAND
        self.expected_body_length = None

    def _fail(self, error: Exception) -> NoReturn:
        """Drop all buffered state and raise ``error``; framing cannot resume."""
        self._buffer.clear()
        self._reset()
        raise error
