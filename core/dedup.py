from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta

from core.clock import SystemClock

log = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=48)
DEFAULT_SWEEP_INTERVAL = 60.0


class DedupeCache:
    """Time-to-live keyed set that suppresses re-delivery of drop events.

    A key that is present and unexpired means its event has already been
    handed to the sinks.  Expiry is checked on every lookup, so a stale key
    is treated as new even before the periodic sweep removes it.  The sweep
    only bounds memory.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        clock: SystemClock | None = None,
    ) -> None:
        self._ttl = ttl
        self._sweep_interval = sweep_interval
        self._clock = clock or SystemClock()
        self._expires: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def should_deliver(self, key: str) -> bool:
        """Return True and reserve *key* the first time it is seen within the TTL."""
        now = self._clock.now()
        with self._lock:
            expires_at = self._expires.get(key)
            if expires_at is not None and expires_at > now:
                return False
            self._expires[key] = now + self._ttl
            return True

    def sweep(self) -> int:
        """Drop expired records and return how many were removed."""
        now = self._clock.now()
        with self._lock:
            expired = [k for k, exp in self._expires.items() if exp <= now]
            for key in expired:
                del self._expires[key]
        return len(expired)

    async def run_sweeper(self) -> None:
        """Sweep every ``sweep_interval`` seconds until cancelled."""
        log.info(
            "Dedupe sweeper started (ttl=%s, interval=%.0fs)",
            self._ttl,
            self._sweep_interval,
        )
        while True:
            await self._clock.sleep(self._sweep_interval)
            removed = self.sweep()
            if removed:
                log.debug("Swept %d expired dedupe record(s), %d live", removed, self.size)

    @property
    def size(self) -> int:
        return len(self._expires)
