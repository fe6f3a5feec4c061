"""Logging configuration utilities for the command server."""

import json
import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from comm_server.domain.correlation_id import LOGGER_ROOT, CorrelationLoggerAdapter

LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s :: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5

SENSITIVE_PATTERNS = [
    re.compile(r"(?i)(authorization|token|password|secret|api[_-]?key)"),
    re.compile(r"\b[A-Fa-f0-9]{40,}\b"),
]

STRUCTURED_KEYS = (
    "client",
    "connection_id",
    "command",
    "path",
    "status_code",
    "note",
    "bytes_in",
    "bytes_out",
    "expected_bytes",
    "received_bytes",
    "window_seconds",
    "max_requests",
    "removed_entries",
    "tracked_clients",
    "error_type",
    "host",
    "port",
    "serve_directory",
    "storage_directory",
    "log_destination",
    "log_level",
    "idle_timeout",
    "shutdown_grace_seconds",
    "signal",
    "exit_code",
    "restarts",
)


def redact_sensitive(value: str) -> str:
    """Replace values that look like credentials with a placeholder."""
    if not value:
        return value
    for pattern in SENSITIVE_PATTERNS:
        if pattern.search(value):
            return "[REDACTED]"
    return value


class CorrelationIdFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Ensure correlation_id field exists in log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record with sorted keys."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "correlation_id": getattr(record, "correlation_id", "-"),
            "component": getattr(record, "component", "unknown"),
            "message": record.getMessage(),
        }
        if hasattr(record, "event"):
            log_data["event"] = record.event

        for key in STRUCTURED_KEYS:
            if hasattr(record, key):
                value = getattr(record, key)
                if isinstance(value, str) and key not in ("path", "client"):
                    value = redact_sensitive(value)
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, sort_keys=True, default=str)


def _resolve_level(level_name: str) -> int:
    level = getattr(logging, level_name.upper(), None)
    if isinstance(level, int):
        return level
    return logging.INFO


def _build_handler(
    destination: Optional[str], level: int, use_json: bool = True
) -> logging.Handler:
    """Create a stdout or rotating file handler for the project logger."""
    if destination and destination.lower() != "stdout":
        target_path = Path(destination)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = RotatingFileHandler(
            target_path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT
        )
    else:
        handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if use_json:
        handler.setFormatter(JsonFormatter(datefmt=DATE_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    handler.addFilter(CorrelationIdFilter())
    return handler


def configure_logging(
    level: str = "INFO", destination: Optional[str] = None, use_json: bool = True
) -> CorrelationLoggerAdapter:
    """Configure the project logger and return an adapter for it."""
    logger = logging.getLogger(LOGGER_ROOT)
    numeric_level = _resolve_level(level)
    logger.setLevel(numeric_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.addHandler(_build_handler(destination, numeric_level, use_json))

    adapter = CorrelationLoggerAdapter(logger, {})
    adapter.info(
        "Logging configured",
        extra={
            "event": "logging_configured",
            "log_destination": destination or "stdout",
            "log_level": logging.getLevelName(numeric_level),
        },
    )
    return adapter
