"""Per-command correlation IDs carried through logging via contextvars."""

import contextvars
import logging
import uuid
from typing import Any, MutableMapping, Optional

LOGGER_ROOT = "comm_server"

_correlation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)


def generate_correlation_id() -> str:
    """Return a short random identifier for one command."""
    return uuid.uuid4().hex[:16]


def get_correlation_id() -> Optional[str]:
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)


class CorrelationLoggerAdapter(logging.LoggerAdapter):
    """Inject the active correlation ID and the component name into records."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        correlation_id = get_correlation_id()
        extra["correlation_id"] = correlation_id if correlation_id is not None else "-"

        logger_name = self.logger.name
        prefix = f"{LOGGER_ROOT}."
        if logger_name.startswith(prefix):
            logger_name = logger_name[len(prefix) :]
        extra["component"] = logger_name
        kwargs["extra"] = extra
        return msg, kwargs

