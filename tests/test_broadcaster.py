from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone

import pytest

from core.broadcaster import Broadcaster, LiveChannel, format_sse, parse_sse
from models.event import DropEvent, EntityKey


def _drop(item_id: str = "X") -> DropEvent:
    return DropEvent.create(
        entity_key=EntityKey("cain", "char-1"),
        item_id=item_id,
        item_name="태초 무기",
        occurred_at=datetime(2024, 5, 1, 3, 0, tzinfo=timezone.utc),
    )


def _drain(channel: LiveChannel) -> list[tuple[str, str]]:
    frames = []
    while not channel._queue.empty():
        frames.append(parse_sse(channel._queue.get_nowait()))
    return frames


def test_sse_framing_round_trip() -> None:
    frame = format_sse('"connected"', event="ping")
    assert frame == 'event: ping\ndata: "connected"\n\n'
    assert parse_sse(frame) == ("ping", '"connected"')
    assert parse_sse(format_sse("a\nb")) == ("message", "a\nb")


@pytest.mark.asyncio
async def test_new_channel_gets_ping_and_no_backlog() -> None:
    bus = Broadcaster()
    await bus.publish(_drop("before"))

    channel = bus.subscribe()
    await bus.publish(_drop("after"))

    frames = _drain(channel)
    assert frames[0] == ("ping", '"connected"')
    assert len(frames) == 2
    event, data = frames[1]
    assert event == "message"
    payload = json.loads(data)
    assert payload["itemId"] == "after"
    assert payload["itemName"] == "태초 무기"
    assert payload["id"] == _drop("after").dedupe_key
    assert payload["type"] == "ancient-drop"


@pytest.mark.asyncio
async def test_disconnect_between_publishes() -> None:
    bus = Broadcaster()
    a, b, c = bus.subscribe(), bus.subscribe(), bus.subscribe()

    assert await bus.publish(_drop("1")) == 3
    bus.unsubscribe(b)
    assert await bus.publish(_drop("2")) == 2

    assert [json.loads(d)["itemId"] for e, d in _drain(a) if e == "message"] == ["1", "2"]
    assert [json.loads(d)["itemId"] for e, d in _drain(c) if e == "message"] == ["1", "2"]
    assert b.closed
    assert bus.consumer_count == 2


@pytest.mark.asyncio
async def test_failed_write_removes_only_that_channel() -> None:
    bus = Broadcaster(channel_maxsize=2)
    slow = bus.subscribe()
    fast = bus.subscribe()

    await bus.publish(_drop("1"))
    _drain(fast)
    delivered = await bus.publish(_drop("2"))

    assert delivered == 1
    assert bus.consumer_count == 1
    assert slow.closed
    assert not fast.closed


@pytest.mark.asyncio
async def test_channel_closed_by_viewer_is_dropped_on_next_write() -> None:
    bus = Broadcaster()
    gone = bus.subscribe()
    stays = bus.subscribe()
    gone.close()

    assert await bus.publish(_drop()) == 1
    assert bus.consumer_count == 1
    assert not stays.closed


@pytest.mark.asyncio
async def test_heartbeat_reaches_every_channel(clock) -> None:
    bus = Broadcaster(clock=clock, heartbeat_interval=15)
    a, b = bus.subscribe(), bus.subscribe()

    task = asyncio.create_task(bus.run_heartbeat())
    for _ in range(3):
        await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    for channel in (a, b):
        frames = _drain(channel)
        assert frames[0] == ("ping", '"connected"')
        assert len(frames) >= 2
        assert all(event == "ping" for event, _ in frames)
    assert clock.sleeps[0] == 15


@pytest.mark.asyncio
async def test_iteration_ends_when_channel_closes() -> None:
    bus = Broadcaster()
    channel = bus.subscribe()
    await bus.publish(_drop())

    received: list[str] = []

    async def read() -> None:
        async for frame in channel:
            received.append(frame)

    reader = asyncio.create_task(read())
    await asyncio.sleep(0)
    bus.unsubscribe(channel)
    await asyncio.wait_for(reader, timeout=1)

    assert len(received) == 2
