"""Server lifecycle state management."""

import logging
import threading
import time

from comm_server.domain.correlation_id import CorrelationLoggerAdapter

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("comm_server.lifecycle"), {}
)


class ServerLifecycle:
    """Tracks connection workers and the draining/stopped flags."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._workers: set[threading.Thread] = set()

    def should_stop(self) -> bool:
        return self._stop_event.is_set()

    def is_draining(self) -> bool:
        return self._stop_event.is_set()

    def wait_for_stop(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True once shutdown has begun."""
        return self._stop_event.wait(timeout)

    def register_worker(self, thread: threading.Thread) -> None:
        with self._lock:
            self._workers.add(thread)

    def cleanup_worker(self, thread: threading.Thread) -> None:
        with self._lock:
            self._workers.discard(thread)

    def active_worker_count(self) -> int:
        with self._lock:
            return len(self._workers)

    def begin_draining(self) -> None:
        """Stop accepting connections and let active ones finish."""
        if not self._stop_event.is_set():
            self._stop_event.set()
            LIFECYCLE_LOGGER.info(
                "Beginning graceful shutdown", extra={"event": "draining_started"}
            )

    def wait_for_workers(self, timeout: float) -> bool:
        """Join tracked workers until they finish or ``timeout`` elapses."""
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                self._workers = {w for w in self._workers if w.is_alive()}
                active_workers = list(self._workers)
            if not active_workers:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                LIFECYCLE_LOGGER.warning(
                    "Shutdown timeout exceeded",
                    extra={"event": "shutdown_timeout", "workers": len(active_workers)},
                )
                return False
            for worker in active_workers:
                worker.join(timeout=min(0.1, remaining))
                if time.monotonic() >= deadline:
                    break
