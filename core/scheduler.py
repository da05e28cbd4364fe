from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta

from core.clock import SystemClock
from core.dedup import DedupeCache
from core.detector import DropDetector
from core.errors import TransientUpstreamError
from core.registry import SubscriptionRegistry
from core.sinks import DropSink
from models.event import EntityKey, Timeline
from models.subscription import Subscription
from providers.base import TimelineProvider

log = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = timedelta(seconds=15)
DEFAULT_POLL_SLACK = timedelta(seconds=1)
DEFAULT_TICK_INTERVAL = 1.0
DEFAULT_CONCURRENCY_LIMIT = 20


class PollScheduler:
    """Drives one detection cycle per subscription on a fixed cadence.

    A single loop wakes every ``tick_interval`` seconds and starts a cycle
    for each subscription that is idle and due.  A subscription is due when
    its last cycle started at least ``poll_interval - slack`` ago.  Cycles
    of one subscription never overlap; cycles of different subscriptions
    run as independent tasks.

    A shared ``asyncio.Semaphore`` bounds concurrent upstream fetches.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        provider: TimelineProvider,
        detector: DropDetector,
        dedup: DedupeCache,
        sinks: list[DropSink],
        clock: SystemClock | None = None,
        poll_interval: timedelta = DEFAULT_POLL_INTERVAL,
        slack: timedelta = DEFAULT_POLL_SLACK,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
    ) -> None:
        self._registry = registry
        self._provider = provider
        self._detector = detector
        self._dedup = dedup
        self._sinks = list(sinks)
        self._clock = clock or SystemClock()
        self._poll_interval = poll_interval
        self._slack = slack
        self._tick_interval = tick_interval
        self._semaphore = asyncio.Semaphore(concurrency_limit)
        self._running: dict[EntityKey, asyncio.Task[int]] = {}

    def is_due(self, sub: Subscription, now: datetime) -> bool:
        if sub.last_cycle_started is None:
            return True
        return now - sub.last_cycle_started >= self._poll_interval - self._slack

    def is_running(self, entity_key: EntityKey) -> bool:
        return entity_key in self._running

    def tick(self) -> list[asyncio.Task[int]]:
        """Start a cycle task for every idle, due subscription."""
        now = self._clock.now()
        started: list[asyncio.Task[int]] = []
        for sub in self._registry.subscriptions:
            key = sub.entity_key
            if key in self._running or not self.is_due(sub, now):
                continue
            task = asyncio.create_task(self.run_cycle(key), name=f"cycle-{key}")
            self._running[key] = task
            task.add_done_callback(lambda _t, k=key: self._running.pop(k, None))
            started.append(task)
        return started

    async def run_cycle(self, entity_key: EntityKey) -> int:
        """Run one fetch/detect/deliver cycle; return the number of new drops.

        On success the subscription's cursor advances to the end of the
        scanned window.  An upstream failure is logged and leaves the cursor
        untouched so the next cycle re-covers the same window.
        """
        sub = self._registry.get(entity_key)
        if sub is None:
            return 0

        window_end = self._clock.now()
        self._registry.mark_started(entity_key, window_end)

        try:
            async with self._semaphore:
                timeline = await self._provider.fetch_timeline(
                    entity_key, sub.last_checked, window_end
                )
                drops = await self._detector.detect(entity_key, timeline.entries)
        except TransientUpstreamError as exc:
            log.warning("Cycle %s aborted, cursor kept at %s: %s", entity_key, sub.last_checked, exc)
            return 0
        except Exception:
            log.exception("Cycle %s failed", entity_key)
            return 0

        new_count = 0
        for drop in drops:
            if not self._dedup.should_deliver(drop.dedupe_key):
                continue
            new_count += 1
            for sink in self._sinks:
                try:
                    await sink.deliver(drop)
                except Exception:
                    log.exception("Sink %s failed delivering %s", sink.name, drop.dedupe_key)

        advance_to = self._advance_point(entity_key, timeline, window_end)
        self._registry.mark_checked(entity_key, advance_to)

        if new_count:
            log.info(
                "Cycle %s: %d new drop(s) of %d entr(ies), %d dedupe record(s)",
                entity_key,
                new_count,
                len(timeline.entries),
                self._dedup.size,
            )
        return new_count

    def _advance_point(
        self, entity_key: EntityKey, timeline: Timeline, window_end: datetime
    ) -> datetime:
        """Where the cursor may move after a successful cycle.

        Rows past a page cap were never seen, so after a truncated fetch the
        cursor stops at the oldest collected entry and the next window
        re-covers the rest; dedupe absorbs the overlap.
        """
        if not timeline.truncated or not timeline.entries:
            return window_end
        oldest = min(e.occurred_at for e in timeline.entries)
        log.warning("Cycle %s truncated, cursor limited to %s", entity_key, oldest)
        return min(oldest, window_end)

    async def run(self) -> None:
        """Tick forever.

        Cancelling this task stops new cycles from starting; cycles already
        in flight are left to finish.
        """
        log.info(
            "Scheduler started (interval=%ss, slack=%ss, concurrency limit=%d)",
            self._poll_interval.total_seconds(),
            self._slack.total_seconds(),
            self._semaphore._value,
        )
        while True:
            self.tick()
            await self._clock.sleep(self._tick_interval)
