"""Unit tests for JSON logging, redaction and correlation IDs."""

import json
import logging
from pathlib import Path

import pytest

from comm_server.bootstrap.logging_setup import (
    CorrelationIdFilter,
    JsonFormatter,
    configure_logging,
    redact_sensitive,
)
from comm_server.domain.correlation_id import (
    CorrelationLoggerAdapter,
    clear_correlation_id,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)


@pytest.fixture(name="reset_project_logger")
def fixture_reset_project_logger():
    yield
    logger = logging.getLogger("comm_server")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "comm_server.test", logging.INFO, __file__, 1, "hello", None, None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_emits_structured_fields() -> None:
    record = _record(
        correlation_id="abc",
        component="pipeline.dispatcher",
        event="command_failed",
        client="10.0.0.1",
        status_code=404,
        unrelated="dropped",
    )

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "hello"
    assert payload["level"] == "INFO"
    assert payload["correlation_id"] == "abc"
    assert payload["component"] == "pipeline.dispatcher"
    assert payload["event"] == "command_failed"
    assert payload["client"] == "10.0.0.1"
    assert payload["status_code"] == 404
    assert "unrelated" not in payload


def test_json_formatter_redacts_credentials_but_not_paths() -> None:
    record = _record(command="token=abcdef", path="secret/password.txt")

    payload = json.loads(JsonFormatter().format(record))

    assert payload["command"] == "[REDACTED]"
    assert payload["path"] == "secret/password.txt"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("plain text", "plain text"),
        ("Authorization: Bearer x", "[REDACTED]"),
        ("a" * 40, "[REDACTED]"),
        ("", ""),
    ],
)
def test_redact_sensitive(value: str, expected: str) -> None:
    assert redact_sensitive(value) == expected


def test_filter_supplies_missing_correlation_id() -> None:
    record = _record()
    assert CorrelationIdFilter().filter(record) is True
    assert record.correlation_id == "-"


@pytest.mark.usefixtures("reset_project_logger")
def test_configure_logging_writes_json_file(tmp_path: Path) -> None:
    destination = tmp_path / "logs" / "server.log"

    configure_logging("debug", destination.as_posix())

    logger = logging.getLogger("comm_server")
    assert logger.level == logging.DEBUG
    for handler in logger.handlers:
        handler.flush()
    first_line = destination.read_text(encoding="utf-8").splitlines()[0]
    payload = json.loads(first_line)
    assert payload["event"] == "logging_configured"
    assert payload["log_level"] == "DEBUG"


@pytest.mark.usefixtures("reset_project_logger")
def test_configure_logging_text_format(tmp_path: Path) -> None:
    destination = tmp_path / "server.log"

    configure_logging("INFO", destination.as_posix(), use_json=False)

    for handler in logging.getLogger("comm_server").handlers:
        handler.flush()
    line = destination.read_text(encoding="utf-8").splitlines()[0]
    assert not line.startswith("{")
    assert "[-] comm_server :: Logging configured" in line


@pytest.mark.usefixtures("reset_project_logger")
def test_configure_logging_replaces_previous_handlers(tmp_path: Path) -> None:
    configure_logging("INFO", (tmp_path / "one.log").as_posix())
    configure_logging("INFO", (tmp_path / "two.log").as_posix())

    assert len(logging.getLogger("comm_server").handlers) == 1


def test_adapter_injects_correlation_id_and_component(
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO, logger="comm_server")
    adapter = CorrelationLoggerAdapter(
        logging.getLogger("comm_server.transport.worker"), {}
    )
    set_correlation_id("abc123")
    try:
        adapter.info("scoped", extra={"event": "test"})
    finally:
        clear_correlation_id()
    adapter.info("unscoped")

    scoped, unscoped = caplog.records[-2:]
    assert scoped.correlation_id == "abc123"
    assert scoped.component == "transport.worker"
    assert scoped.event == "test"
    assert unscoped.correlation_id == "-"


def test_correlation_ids_are_short_and_unique() -> None:
    first, second = generate_correlation_id(), generate_correlation_id()

    assert len(first) == 16
    assert first != second
    assert get_correlation_id() is None
