"""Per-connection state owned by a single worker thread."""

import ipaddress
import itertools
from dataclasses import dataclass, field

from comm_server.bootstrap.config import ServerConfig
from comm_server.pipeline.reassembler import StreamReassembler

LOOPBACK_V4 = "127.0.0.1"

_connection_ids = itertools.count(1)


def normalize_client_ip(address: str) -> str:
    """Collapse IPv4-mapped IPv6 and IPv6 loopback addresses to IPv4 form."""
    host = address.split("%", 1)[0]
    try:
        parsed = ipaddress.ip_address(host)
    except ValueError:
        return address
    if isinstance(parsed, ipaddress.IPv6Address):
        if parsed.ipv4_mapped is not None:
            return str(parsed.ipv4_mapped)
        if parsed.is_loopback:
            return LOOPBACK_V4
    return str(parsed)


@dataclass
class Connection:
    """One accepted socket's identity and inbound framing state."""

    id: str
    source_address: str
    peer: str
    reassembler: StreamReassembler = field(default_factory=StreamReassembler)

    @classmethod
    def accept(cls, client_address: tuple, config: ServerConfig) -> "Connection":
        host, port = client_address[0], client_address[1]
        return cls(
            id=f"conn-{next(_connection_ids)}",
            source_address=normalize_client_ip(host),
            peer=f"{host}:{port}",
            reassembler=StreamReassembler(config.max_line_bytes, config.max_body_bytes),
        )
