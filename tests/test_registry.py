from __future__ import annotations

from datetime import timedelta

import pytest

from core.errors import SubscriptionLimitError
from core.registry import SubscriptionRegistry
from models.event import EntityKey


def test_subscribe_starts_window_in_the_past(clock, entity) -> None:
    registry = SubscriptionRegistry(clock=clock, initial_lookback=timedelta(minutes=5))

    sub = registry.subscribe(entity)

    assert sub.created_at == clock.now()
    assert sub.last_checked == clock.now() - timedelta(minutes=5)
    assert sub.last_cycle_started is None
    assert entity in registry
    assert len(registry) == 1


def test_resubscribe_keeps_creation_time(clock, entity) -> None:
    registry = SubscriptionRegistry(clock=clock)
    first = registry.subscribe(entity)
    clock.advance(3600)

    second = registry.subscribe(entity)

    assert second.created_at == first.created_at
    assert second.last_checked > first.last_checked
    assert len(registry) == 1


def test_capacity_limit(clock) -> None:
    registry = SubscriptionRegistry(clock=clock, max_subscriptions=2)
    registry.subscribe(EntityKey("cain", "a"))
    registry.subscribe(EntityKey("cain", "b"))

    with pytest.raises(SubscriptionLimitError):
        registry.subscribe(EntityKey("cain", "c"))
    registry.subscribe(EntityKey("cain", "a"))


def test_cursor_never_moves_backwards(clock, entity) -> None:
    registry = SubscriptionRegistry(clock=clock)
    registry.subscribe(entity)
    later = clock.now() + timedelta(seconds=30)

    registry.mark_checked(entity, later)
    registry.mark_checked(entity, clock.now())

    assert registry.get(entity).last_checked == later


def test_readers_get_copies(clock, entity) -> None:
    registry = SubscriptionRegistry(clock=clock)
    registry.subscribe(entity)

    snapshot = registry.get(entity)
    snapshot.last_checked = clock.now() + timedelta(days=1)

    assert registry.get(entity).last_checked < snapshot.last_checked
    assert registry.subscriptions[0] is not registry.subscriptions[0]


def test_unsubscribe(clock, entity) -> None:
    registry = SubscriptionRegistry(clock=clock)
    registry.subscribe(entity)

    assert registry.unsubscribe(entity)
    assert not registry.unsubscribe(entity)
    assert registry.get(entity) is None


def test_entity_key_parse() -> None:
    assert EntityKey.parse("cain:abc") == EntityKey("cain", "abc")
    assert str(EntityKey("cain", "abc")) == "cain:abc"
    for bad in ("cain", ":abc", "cain:", ""):
        with pytest.raises(ValueError):
            EntityKey.parse(bad)
