"""Filesystem sandbox utilities for safe path resolution."""

from pathlib import Path
from typing import Union

from comm_server.domain.errors import PathEscape


def clean_request_path(user_path: str) -> str:
    """Strip whitespace and leading separators from a client-supplied path."""
    return user_path.strip().lstrip("/")


def resolve_sandbox_path(root: Union[str, Path], user_path: str) -> Path:
    """Resolve a client path to a canonical descendant of ``root``.

    Symlinks are followed on both sides, so a link that points outside the
    root is rejected the same way as a ``..`` escape. Components that do not
    exist yet are normalized lexically, which lets uploads target new
    directories.
    """
    if "\x00" in user_path:
        raise PathEscape("Access denied: Invalid path")

    relative_part = clean_request_path(user_path)
    if not relative_part:
        raise PathEscape("Access denied: Invalid path")

    try:
        root_path = Path(root).expanduser().resolve()
        target = (root_path / relative_part).resolve()
    except (OSError, RuntimeError) as exc:
        raise PathEscape("Access denied: Invalid path") from exc

    if root_path not in target.parents:
        raise PathEscape("Access denied: Invalid path")
    return target
