"""Background removal of idle rate limiter entries."""

import logging
import threading
from typing import Optional

from comm_server.domain.correlation_id import CorrelationLoggerAdapter
from comm_server.domain.rate_limiter import SlidingWindowRateLimiter
from comm_server.lifecycle.state import ServerLifecycle

SWEEPER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("comm_server.lifecycle.sweeper"), {}
)


class IdleEntrySweeper(threading.Thread):
    """Calls ``rate_limiter.sweep()`` every ``interval`` seconds until shutdown."""

    def __init__(
        self,
        rate_limiter: SlidingWindowRateLimiter,
        lifecycle: ServerLifecycle,
        interval: Optional[float] = None,
    ) -> None:
        super().__init__(name="idle-entry-sweeper", daemon=True)
        self._rate_limiter = rate_limiter
        self._lifecycle = lifecycle
        if interval is None:
            interval = rate_limiter.idle_ttl_seconds
        self._interval = interval

    def run(self) -> None:
        if self._interval <= 0:
            return
        while not self._lifecycle.wait_for_stop(self._interval):
            self.sweep_once()

    def sweep_once(self) -> int:
        removed = self._rate_limiter.sweep()
        if removed:
            SWEEPER_LOGGER.info(
                "Removed idle rate limit entries",
                extra={
                    "event": "idle_entries_swept",
                    "removed_entries": removed,
                    "tracked_clients": self._rate_limiter.tracked_clients(),
                },
            )
        return removed
