"""Parsed command types produced by the stream reassembler."""

from dataclasses import dataclass, field
from typing import Union

CHAT_KEYWORD = "COMM"
INFO_KEYWORD = "GET_INFO"
LIST_KEYWORD = "GET_LIST"

TRANSFER_GET = "GET"
TRANSFER_POST = "POST"
TRANSFER_DELETE = "DELETE"
TRANSFER_METHODS = {TRANSFER_GET, TRANSFER_POST, TRANSFER_DELETE}


@dataclass
class ChatCommand:
    """Free-text message sent with ``COMM``."""

    text: str

    @property
    def method(self) -> str:
        return CHAT_KEYWORD


@dataclass
class InfoCommand:
    """Request for the caller's connection statistics."""

    @property
    def method(self) -> str:
        return INFO_KEYWORD


@dataclass
class ListCommand:
    """Request for the storage directory listing."""

    @property
    def method(self) -> str:
        return LIST_KEYWORD


@dataclass
class TransferCommand:
    """A path-bearing file command (GET, POST or DELETE)."""

    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


Command = Union[ChatCommand, InfoCommand, ListCommand, TransferCommand]
