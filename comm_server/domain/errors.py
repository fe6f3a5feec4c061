"""Error taxonomy shared by the reassembler, dispatcher and file handlers."""

from typing import Optional


class ProtocolError(Exception):
    """Base class for failures that map onto a protocol status code."""

    status_code = 500
    default_message = "Internal server error"
    closes_connection = False

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MalformedCommand(ProtocolError):
    """Raised when a command cannot be framed or parsed."""

    status_code = 400
    default_message = "Invalid request format"
    closes_connection = True


class IncompleteBody(MalformedCommand):
    """Raised when the stream ends before a declared body arrived."""

    default_message = "Incomplete request body"


class PathEscape(ProtocolError):
    """Raised when a requested path resolves outside its sandbox root."""

    status_code = 403
    default_message = "Access denied: Invalid path"


class NotFound(ProtocolError):
    """Raised when a requested file or directory does not exist."""

    status_code = 404
    default_message = "File not found"


class MethodNotSupported(ProtocolError):
    """Raised for command keywords the server does not implement."""

    status_code = 405
    default_message = "Method not allowed"


class RequestTimeout(ProtocolError):
    """Raised when a connection stays idle past its timeout."""

    status_code = 408
    default_message = "Request timeout"
    closes_connection = True


class PayloadTooLarge(ProtocolError):
    """Raised when a command line or body exceeds configured limits."""

    status_code = 413
    default_message = "Payload too large"
    closes_connection = True


class RateLimited(ProtocolError):
    """Raised when a client exceeds its request window."""

    status_code = 429
    default_message = "Too Many Requests"
    closes_connection = True


class IOFailure(ProtocolError):
    """Raised when a filesystem operation fails."""

    status_code = 500
    default_message = "Error accessing file"


class PermissionDenied(IOFailure):
    """Raised when the server process lacks filesystem permissions."""

    default_message = "Permission denied"


class IsADirectory(IOFailure):
    """Raised when a file operation targets a directory."""

    status_code = 400
    default_message = "Not a file"
