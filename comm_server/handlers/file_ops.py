"""Filesystem primitives over already-sandboxed paths.

Callers resolve paths through :mod:`comm_server.domain.sandbox` first; the
functions here only translate ``OSError`` into protocol failures.
"""

import contextlib
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator

from comm_server.domain.correlation_id import CorrelationLoggerAdapter
from comm_server.domain.errors import (
    IOFailure,
    IsADirectory,
    NotFound,
    PermissionDenied,
)

FILE_OPS_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("comm_server.handlers.file_ops"), {}
)

TEMP_PREFIX = ".upload-"


@dataclass(frozen=True)
class FileEntry:
    """One file in a directory listing."""

    name: str
    size: int
    modified: float

    def describe(self) -> str:
        modified = datetime.fromtimestamp(self.modified).astimezone()
        return (
            f"{self.name} - Size: {self.size} bytes - "
            f"Last Modified: {modified.isoformat(timespec='seconds')}"
        )


@contextlib.contextmanager
def translate_os_errors(path: Path) -> Iterator[None]:
    """Re-raise filesystem errors for ``path`` as typed protocol failures."""
    try:
        yield
    except FileNotFoundError as exc:
        raise NotFound(f"File {path.name} not found") from exc
    except IsADirectoryError as exc:
        raise IsADirectory(f"{path.name} is a directory") from exc
    except PermissionError as exc:
        raise PermissionDenied(f"Permission denied: {path.name}") from exc
    except OSError as exc:
        FILE_OPS_LOGGER.error(
            "Filesystem operation failed",
            extra={
                "event": "io_failure",
                "path": path.as_posix(),
                "error_type": type(exc).__name__,
            },
        )
        raise IOFailure(f"Error accessing {path.name}") from exc


def read_file(path: Path) -> bytes:
    with translate_os_errors(path):
        return path.read_bytes()


def write_file(path: Path, data: bytes) -> int:
    """Write ``data`` verbatim, replacing ``path`` only once fully written."""
    with translate_os_errors(path):
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.is_dir():
            raise IsADirectoryError(path)
        fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=TEMP_PREFIX)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(temp_name, path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(temp_name)
            raise
    return len(data)


def delete_file(path: Path) -> None:
    """Unlink a regular file."""
    with translate_os_errors(path):
        if not path.exists():
            raise FileNotFoundError(path)
        if not path.is_file():
            raise IsADirectoryError(path)
        path.unlink()


def list_directory(path: Path) -> list[FileEntry]:
    """Return the regular files and directories under ``path``, sorted by name."""
    with translate_os_errors(path):
        entries = []
        for child in sorted(path.iterdir(), key=lambda item: item.name):
            if child.name.startswith(TEMP_PREFIX):
                continue
            stats = child.stat()
            entries.append(FileEntry(child.name, stats.st_size, stats.st_mtime))
        return entries
