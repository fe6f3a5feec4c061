"""Server configuration and CLI argument parsing."""

import argparse
import os
from dataclasses import dataclass

from comm_server.domain.rate_limiter import RateLimitSettings


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value is not None else default


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value else default


DEFAULT_HOST = _env_str("COMM_SERVER_HOST", "0.0.0.0")
DEFAULT_PORT = _env_int("COMM_SERVER_PORT", 9999)
DEFAULT_SERVE_DIRECTORY = _env_str("COMM_SERVER_SERVE_DIRECTORY", ".")
DEFAULT_STORAGE_DIRECTORY = _env_str(
    "COMM_SERVER_STORAGE_DIRECTORY", os.path.join("~", "Desktop", "server")
)
DEFAULT_ACCESS_LOG = _env_str("COMM_SERVER_ACCESS_LOG", "ip_access.log")
DEFAULT_MAX_REQUESTS = _env_int("COMM_SERVER_MAX_REQUESTS", 100)
DEFAULT_RATE_WINDOW_SECONDS = _env_float("COMM_SERVER_RATE_WINDOW_SECONDS", 60.0)
DEFAULT_IDLE_TTL_SECONDS = _env_float("COMM_SERVER_IDLE_TTL_SECONDS", 3600.0)
DEFAULT_IDLE_TIMEOUT = _env_float("COMM_SERVER_IDLE_TIMEOUT", 120.0)
DEFAULT_MAX_BODY_BYTES = _env_int("COMM_SERVER_MAX_BODY_BYTES", 100 * 1024 * 1024)
DEFAULT_MAX_LINE_BYTES = _env_int("COMM_SERVER_MAX_LINE_BYTES", 8192)
DEFAULT_SHUTDOWN_GRACE_SECONDS = _env_int("COMM_SERVER_SHUTDOWN_GRACE_SECONDS", 10)

EXIT_BIND_FAILURE = 3


@dataclass
class ServerConfig:
    """Per-connection limits and shutdown settings."""

    idle_timeout: float = DEFAULT_IDLE_TIMEOUT
    shutdown_grace_seconds: int = DEFAULT_SHUTDOWN_GRACE_SECONDS
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    max_line_bytes: int = DEFAULT_MAX_LINE_BYTES


def build_server_config(args: argparse.Namespace) -> ServerConfig:
    return ServerConfig(
        idle_timeout=args.idle_timeout,
        shutdown_grace_seconds=args.shutdown_grace_seconds,
        max_body_bytes=args.max_body_bytes,
        max_line_bytes=args.max_line_bytes,
    )


def build_rate_limit_settings(args: argparse.Namespace) -> RateLimitSettings:
    return RateLimitSettings(
        max_requests=args.max_requests,
        window_seconds=args.rate_window_seconds,
        idle_ttl_seconds=args.idle_ttl_seconds,
    )


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for server configuration."""
    parser = argparse.ArgumentParser(description="File and message command server")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument(
        "--serve-directory",
        default=DEFAULT_SERVE_DIRECTORY,
        help="Directory GET reads files from",
    )
    parser.add_argument(
        "--storage-directory",
        default=DEFAULT_STORAGE_DIRECTORY,
        help="Directory for uploads, deletes, listings and GET mirrors",
    )
    default_log_level = os.getenv("COMM_SERVER_LOG_LEVEL", "INFO").upper()
    default_destination = os.getenv("COMM_SERVER_LOG_DESTINATION", "stdout")
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--log-format",
        default=os.getenv("COMM_SERVER_LOG_FORMAT", "json").lower(),
        choices=["json", "text"],
        type=str.lower,
    )
    parser.add_argument(
        "--access-log",
        default=DEFAULT_ACCESS_LOG,
        help="File receiving one line per client request ('none' to disable)",
    )
    parser.add_argument(
        "--max-requests",
        type=int,
        default=DEFAULT_MAX_REQUESTS,
        help="Requests allowed per client within the rate window (0 to disable)",
    )
    parser.add_argument(
        "--rate-window-seconds",
        type=float,
        default=DEFAULT_RATE_WINDOW_SECONDS,
        help="Length of the sliding rate limit window",
    )
    parser.add_argument(
        "--idle-ttl-seconds",
        type=float,
        default=DEFAULT_IDLE_TTL_SECONDS,
        help="Forget rate limit entries idle for longer than this",
    )
    parser.add_argument(
        "--idle-timeout",
        type=float,
        default=DEFAULT_IDLE_TIMEOUT,
        help="Seconds of inactivity before a connection receives 408",
    )
    parser.add_argument(
        "--max-body-bytes",
        type=int,
        default=DEFAULT_MAX_BODY_BYTES,
        help="Largest accepted POST body",
    )
    parser.add_argument(
        "--max-line-bytes",
        type=int,
        default=DEFAULT_MAX_LINE_BYTES,
        help="Longest accepted command line",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=int,
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        help="Grace period in seconds for graceful shutdown",
    )
    return parser.parse_args(argv)
