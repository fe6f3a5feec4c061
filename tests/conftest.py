"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Generator, TypedDict

import pytest

from tests.utils.protocol import reserve_port, wait_for_port

if TYPE_CHECKING:
    from _pytest.tmpdir import TempPathFactory

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"


class ServerProcessInfo(TypedDict):
    """Metadata describing a running server fixture instance."""

    base_url: str
    host: str
    port: int
    serve_directory: Path
    storage_directory: Path
    process: subprocess.Popen[str]
    log_file: Path
    access_log: Path


def build_server_args(
    host: str,
    port: int,
    workspace: Path,
    extra_args: list[str] | None = None,
    serve_directory: Path | None = None,
) -> list[str]:
    """Return the command line for a server rooted in ``workspace``."""
    if serve_directory is None:
        serve_directory = workspace / "serve"
    args = [
        sys.executable,
        str(SERVER_ENTRYPOINT),
        "--host",
        host,
        "--port",
        str(port),
        "--serve-directory",
        str(serve_directory),
        "--storage-directory",
        str(workspace / "storage"),
        "--log-destination",
        str(workspace / "server.log"),
        "--access-log",
        str(workspace / "ip_access.log"),
    ]
    if extra_args:
        args.extend(extra_args)
    return args


def _launch_server(
    workspace: Path,
    extra_args: list[str] | None = None,
    shared_root: bool = False,
) -> Generator[ServerProcessInfo, None, None]:
    host = "127.0.0.1"
    port = reserve_port(host)
    storage_directory = workspace / "storage"
    serve_directory = storage_directory if shared_root else workspace / "serve"
    serve_directory.mkdir(exist_ok=True)
    storage_directory.mkdir(exist_ok=True)
    args = build_server_args(host, port, workspace, extra_args, serve_directory)

    with subprocess.Popen(
        args,
        cwd=PROJECT_ROOT,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    ) as process:
        try:
            wait_for_port(host, port)
        except Exception:
            process.terminate()
            stdout, stderr = process.communicate(timeout=5)
            print(f"\nServer stdout:\n{stdout}")
            print(f"\nServer stderr:\n{stderr}")
            raise

        yield {
            "base_url": f"http://{host}:{port}",
            "host": host,
            "port": port,
            "serve_directory": serve_directory,
            "storage_directory": storage_directory,
            "process": process,
            "log_file": workspace / "server.log",
            "access_log": workspace / "ip_access.log",
        }

        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                process.kill()


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""

    return PROJECT_ROOT


@pytest.fixture(name="server_process")
def _server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the command server in a background process."""

    yield from _launch_server(tmp_path_factory.mktemp("server"))


@pytest.fixture(name="limited_server_process")
def _limited_server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the server with a three request rate limit window."""

    yield from _launch_server(
        tmp_path_factory.mktemp("server-limited"),
        ["--max-requests", "3", "--rate-window-seconds", "60"],
    )


@pytest.fixture(name="impatient_server_process")
def _impatient_server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the server with a one second idle timeout."""

    yield from _launch_server(
        tmp_path_factory.mktemp("server-impatient"), ["--idle-timeout", "1"]
    )


@pytest.fixture(name="shared_root_server_process")
def _shared_root_server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the server serving downloads from its storage directory."""

    yield from _launch_server(
        tmp_path_factory.mktemp("server-shared"), shared_root=True
    )


@pytest.fixture()
def base_url(server_process: ServerProcessInfo) -> str:
    """Expose the running server base URL to integration tests."""

    return server_process["base_url"]
