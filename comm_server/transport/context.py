"""Context object shared across worker threads."""

from dataclasses import dataclass, field
from typing import Optional

from comm_server.bootstrap.config import ServerConfig
from comm_server.domain.rate_limiter import SlidingWindowRateLimiter
from comm_server.lifecycle.state import ServerLifecycle
from comm_server.pipeline.dispatcher import CommandDispatcher
from comm_server.security.access_log import AccessLog


@dataclass
class WorkerContext:
    """Dependencies handed to every connection worker."""

    dispatcher: CommandDispatcher
    rate_limiter: Optional[SlidingWindowRateLimiter] = None
    lifecycle: Optional[ServerLifecycle] = None
    config: ServerConfig = field(default_factory=ServerConfig)
    access_log: Optional[AccessLog] = None
