"""Append-only per-client access log."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from comm_server.domain.correlation_id import CorrelationLoggerAdapter

ACCESS_LOGGER_NAME = "comm_server.access"
ACCESS_LINE_FORMAT = "%(message)s"
DISABLED_DESTINATIONS = {"", "none", "off"}


class AccessLog:
    """Records one line per client request.

    Lines go through the ``comm_server.access`` logger, so they also reach the
    regular log handlers; a file destination adds a plain append-only file.
    """

    def __init__(self, destination: Optional[Union[str, Path]] = None) -> None:
        self._logger = CorrelationLoggerAdapter(
            logging.getLogger(ACCESS_LOGGER_NAME), {}
        )
        self._handler: Optional[logging.Handler] = None
        if (
            destination is not None
            and str(destination).lower() not in DISABLED_DESTINATIONS
        ):
            target = Path(destination)
            target.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(target, mode="a", encoding="utf-8")
            handler.setFormatter(logging.Formatter(ACCESS_LINE_FORMAT))
            handler.setLevel(logging.INFO)
            self._logger.logger.addHandler(handler)
            self._logger.logger.setLevel(logging.INFO)
            self._handler = handler

    def record(
        self, ip: str, method: str, status: Union[int, str], note: str = "**"
    ) -> None:
        timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        timestamp = timestamp.replace("+00:00", "Z")
        self._logger.info(
            f"{timestamp} - IP: {ip} - Method: {method} :: {note} - Status: {status}",
            extra={
                "event": "access",
                "client": ip,
                "command": method,
                "status_code": status,
                "note": note,
            },
        )

    def close(self) -> None:
        if self._handler is not None:
            self._logger.logger.removeHandler(self._handler)
            self._handler.close()
            self._handler = None
