"""Per-client sliding window rate limiting."""

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional


@dataclass(frozen=True)
class RateLimitSettings:
    """Configuration for sliding window admission control."""

    max_requests: int = 100
    window_seconds: float = 60.0
    idle_ttl_seconds: float = 3600.0


@dataclass(slots=True)
class RateLimitEntry:
    """Per-client request window plus lifetime counters."""

    first_seen: float
    last_request: float
    total_requests: int = 0
    window: deque = field(default_factory=deque)


@dataclass(frozen=True)
class ConnectionStats:
    """Snapshot of a client's entry suitable for reporting."""

    ip: str
    first_seen: str
    total_requests: int
    last_request: str
    current_window_requests: int


def _isoformat(timestamp: float) -> str:
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SlidingWindowRateLimiter:
    """Admit at most ``max_requests`` per client within a trailing window.

    Old timestamps are evicted lazily on each check rather than by a timer,
    so the window is approximate between calls but never exceeds the limit.
    Entries for clients idle longer than ``idle_ttl_seconds`` are dropped by
    :meth:`sweep`. All state is guarded by one lock shared with the sweeper.
    """

    def __init__(
        self,
        settings: RateLimitSettings,
        time_provider: Optional[Callable[[], float]] = None,
    ) -> None:
        self._max_requests = max(0, settings.max_requests)
        self._window_seconds = max(0.0, float(settings.window_seconds))
        self._idle_ttl_seconds = max(0.0, float(settings.idle_ttl_seconds))
        self._now_provider = time_provider or time.time
        self._lock = threading.Lock()
        self._entries: dict[str, RateLimitEntry] = {}

    @property
    def idle_ttl_seconds(self) -> float:
        return self._idle_ttl_seconds

    @property
    def enforcing(self) -> bool:
        return self._max_requests > 0 and self._window_seconds > 0

    def _now(self) -> float:
        return self._now_provider()

    def _evict(self, entry: RateLimitEntry, now: float) -> None:
        window = entry.window
        while window and now - window[0] >= self._window_seconds:
            window.popleft()

    def admit(self, client_ip: str, now: Optional[float] = None) -> bool:
        """Record an attempt for ``client_ip`` and return whether it is admitted."""
        if now is None:
            now = self._now()
        with self._lock:
            entry = self._entries.get(client_ip)
            if entry is None:
                entry = RateLimitEntry(first_seen=now, last_request=now)
                self._entries[client_ip] = entry
            entry.total_requests += 1
            entry.last_request = now
            self._evict(entry, now)
            if self.enforcing and len(entry.window) >= self._max_requests:
                return False
            entry.window.append(now)
            return True

    def stats(
        self, client_ip: str, now: Optional[float] = None
    ) -> Optional[ConnectionStats]:
        """Return a snapshot of the client's entry, or None when unseen."""
        if now is None:
            now = self._now()
        with self._lock:
            entry = self._entries.get(client_ip)
            if entry is None:
                return None
            self._evict(entry, now)
            return ConnectionStats(
                ip=client_ip,
                first_seen=_isoformat(entry.first_seen),
                total_requests=entry.total_requests,
                last_request=_isoformat(entry.last_request),
                current_window_requests=len(entry.window),
            )

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop entries idle for longer than the TTL and return how many went."""
        if now is None:
            now = self._now()
        with self._lock:
            stale = [
                client_ip
                for client_ip, entry in self._entries.items()
                if now - entry.last_request > self._idle_ttl_seconds
            ]
            for client_ip in stale:
                del self._entries[client_ip]
            return len(stale)

    def tracked_clients(self) -> int:
        """Return the number of clients currently holding an entry."""
        with self._lock:
            return len(self._entries)
