"""GET, POST and DELETE transfer handlers."""

import logging
from pathlib import Path, PurePosixPath

from comm_server.domain.commands import TransferCommand
from comm_server.domain.correlation_id import CorrelationLoggerAdapter
from comm_server.domain.errors import IsADirectory, NotFound, PathEscape
from comm_server.domain.response_builders import (
    CommandResponse,
    attachment_response,
    text_response,
)
from comm_server.domain.sandbox import clean_request_path, resolve_sandbox_path
from comm_server.handlers.file_ops import delete_file, read_file, write_file

FILE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("comm_server.handlers.file"), {}
)


def _path_required() -> CommandResponse:
    return text_response(400, "Path is required")


def _sandboxed(root: Path, command: TransferCommand) -> Path:
    try:
        return resolve_sandbox_path(root, command.path)
    except PathEscape:
        FILE_LOGGER.warning(
            "Forbidden path access blocked",
            extra={
                "event": "path_escape",
                "path": command.path,
                "command": command.method,
            },
        )
        raise


def handle_get(
    command: TransferCommand, serve_root: Path, storage_root: Path
) -> CommandResponse:
    """Send a file from the serve root and mirror it into the storage root."""
    relative = clean_request_path(command.path)
    if not relative:
        return _path_required()

    source = _sandboxed(serve_root, command)
    mirror = _sandboxed(storage_root, command)
    if not source.exists():
        raise NotFound("Source file not found")
    if not source.is_file():
        raise IsADirectory("Not a file")

    payload = read_file(source)
    if mirror != source:
        write_file(mirror, payload)
    FILE_LOGGER.info(
        "File read operation complete",
        extra={
            "event": "file_read_complete",
            "path": relative,
            "bytes_out": len(payload),
        },
    )
    return attachment_response(PurePosixPath(relative).name, payload)


def handle_post(command: TransferCommand, storage_root: Path) -> CommandResponse:
    """Store the request body verbatim under the storage root."""
    relative = clean_request_path(command.path)
    if not relative:
        return _path_required()

    target = _sandboxed(storage_root, command)
    if FILE_LOGGER.logger.isEnabledFor(logging.DEBUG):
        FILE_LOGGER.debug(
            "File write started",
            extra={
                "event": "file_write_started",
                "path": relative,
                "bytes_in": len(command.body),
            },
        )
    written = write_file(target, command.body)
    FILE_LOGGER.info(
        "File write complete",
        extra={"event": "file_write_complete", "path": relative, "bytes_in": written},
    )
    return text_response(200, f"File successfully saved to {relative}")


def handle_delete(command: TransferCommand, storage_root: Path) -> CommandResponse:
    """Unlink a regular file under the storage root."""
    relative = clean_request_path(command.path)
    if not relative:
        return text_response(400, "Invalid file path")

    target = _sandboxed(storage_root, command)
    try:
        delete_file(target)
    except NotFound as exc:
        raise NotFound(f"File {relative} not found") from exc
    except IsADirectory as exc:
        raise IsADirectory("Cannot delete: Not a file") from exc
    FILE_LOGGER.info(
        "File deleted",
        extra={"event": "file_delete_complete", "path": relative},
    )
    return text_response(200, f"File {relative} deleted successfully")
