from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta

from core.clock import SystemClock
from core.errors import SubscriptionLimitError
from models.event import EntityKey
from models.subscription import Subscription

log = logging.getLogger(__name__)

DEFAULT_INITIAL_LOOKBACK = timedelta(minutes=5)
DEFAULT_MAX_SUBSCRIPTIONS = 500


class SubscriptionRegistry:
    """Central registry of tracked characters.

    The registration surface calls ``subscribe()``/``unsubscribe()``; the
    scheduler is the only caller of the ``mark_*`` mutators.  Readers get
    copies, never the live records.
    """

    def __init__(
        self,
        clock: SystemClock | None = None,
        initial_lookback: timedelta = DEFAULT_INITIAL_LOOKBACK,
        max_subscriptions: int = DEFAULT_MAX_SUBSCRIPTIONS,
    ) -> None:
        self._clock = clock or SystemClock()
        self._initial_lookback = initial_lookback
        self._max_subscriptions = max_subscriptions
        self._subscriptions: dict[EntityKey, Subscription] = {}
        self._lock = threading.Lock()

    def subscribe(self, entity_key: EntityKey) -> Subscription:
        """Create or refresh the subscription for *entity_key*.

        The first window starts slightly in the past so the initial cycle
        does not scan an empty interval.  Re-subscribing keeps ``created_at``.
        """
        now = self._clock.now()
        with self._lock:
            existing = self._subscriptions.get(entity_key)
            if existing is None and len(self._subscriptions) >= self._max_subscriptions:
                raise SubscriptionLimitError(
                    f"Cannot track {entity_key}: limit of {self._max_subscriptions} reached"
                )
            sub = Subscription(
                entity_key=entity_key,
                last_checked=now - self._initial_lookback,
                created_at=existing.created_at if existing else now,
                last_cycle_started=existing.last_cycle_started if existing else None,
            )
            self._subscriptions[entity_key] = sub
            count = len(self._subscriptions)

        log.info("Subscribed %s (%d tracked)", entity_key, count)
        return replace(sub)

    def unsubscribe(self, entity_key: EntityKey) -> bool:
        with self._lock:
            removed = self._subscriptions.pop(entity_key, None) is not None
        if removed:
            log.info("Unsubscribed %s", entity_key)
        return removed

    def get(self, entity_key: EntityKey) -> Subscription | None:
        with self._lock:
            sub = self._subscriptions.get(entity_key)
            return replace(sub) if sub else None

    def mark_started(self, entity_key: EntityKey, at: datetime) -> None:
        with self._lock:
            sub = self._subscriptions.get(entity_key)
            if sub is not None:
                sub.last_cycle_started = at

    def mark_checked(self, entity_key: EntityKey, at: datetime) -> None:
        """Advance the scanned-window cursor; it never moves backwards."""
        with self._lock:
            sub = self._subscriptions.get(entity_key)
            if sub is not None and at > sub.last_checked:
                sub.last_checked = at

    @property
    def subscriptions(self) -> list[Subscription]:
        with self._lock:
            return [replace(s) for s in self._subscriptions.values()]

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __contains__(self, entity_key: object) -> bool:
        return entity_key in self._subscriptions
