from __future__ import annotations

import asyncio
import json
import logging
import threading

from core.clock import SystemClock
from core.sinks import DropSink
from models.event import DropEvent

log = logging.getLogger(__name__)

DEFAULT_HEARTBEAT_INTERVAL = 15.0
DEFAULT_CHANNEL_MAXSIZE = 100

_CLOSED = None


def format_sse(data: str, event: str | None = None) -> str:
    """Frame *data* as a server-sent event."""
    lines = [f"event: {event}"] if event else []
    lines.extend(f"data: {line}" for line in data.split("\n"))
    return "\n".join(lines) + "\n\n"


def parse_sse(frame: str) -> tuple[str, str]:
    """Split a frame built by ``format_sse`` into (event name, data)."""
    event = "message"
    data: list[str] = []
    for line in frame.rstrip("\n").split("\n"):
        field, _, value = line.partition(": ")
        if field == "event":
            event = value
        elif field == "data":
            data.append(value)
    return event, "\n".join(data)


class ChannelClosed(ConnectionError):
    """Write attempted on a live channel whose viewer has gone away."""


class LiveChannel:
    """One viewer's connection: a bounded queue of SSE frames.

    The HTTP layer iterates the channel and streams each frame.  A viewer
    that stops reading fills its queue; the next write then fails and the
    broadcaster drops the channel.
    """

    def __init__(self, maxsize: int = DEFAULT_CHANNEL_MAXSIZE) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, frame: str) -> None:
        """Queue *frame*; raises ``ChannelClosed`` or ``asyncio.QueueFull``."""
        if self._closed:
            raise ChannelClosed("live channel is closed")
        self._queue.put_nowait(frame)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Wake a reader blocked on get(); make room if the viewer stalled.
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> LiveChannel:
        return self

    async def __anext__(self) -> str:
        frame = await self._queue.get()
        if frame is _CLOSED:
            raise StopAsyncIteration
        return frame


class Broadcaster(DropSink):
    """Fan-out of drop events to every connected live channel.

    Publishing iterates a snapshot of the active set, so channels may
    connect or disconnect at any point, including mid-publish.  A failed
    write removes that channel and never affects the others.  Channels only
    see frames written after they subscribed.
    """

    def __init__(
        self,
        clock: SystemClock | None = None,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        channel_maxsize: int = DEFAULT_CHANNEL_MAXSIZE,
    ) -> None:
        self._clock = clock or SystemClock()
        self._heartbeat_interval = heartbeat_interval
        self._channel_maxsize = channel_maxsize
        self._channels: set[LiveChannel] = set()
        self._lock = threading.Lock()

    def subscribe(self) -> LiveChannel:
        """Register a new viewer and greet it with a connectivity ping."""
        channel = LiveChannel(maxsize=self._channel_maxsize)
        channel.write(format_sse(json.dumps("connected"), event="ping"))
        with self._lock:
            self._channels.add(channel)
            count = len(self._channels)
        log.info("Live channel connected (%d active)", count)
        return channel

    def unsubscribe(self, channel: LiveChannel) -> None:
        with self._lock:
            self._channels.discard(channel)
            count = len(self._channels)
        channel.close()
        log.info("Live channel disconnected (%d active)", count)

    async def publish(self, event: DropEvent) -> int:
        """Write *event* to every active channel; return how many accepted it."""
        frame = format_sse(json.dumps(event.to_payload(), ensure_ascii=False))
        delivered = self._write_all(frame)
        log.info("Published %s to %d live channel(s)", event.dedupe_key, delivered)
        return delivered

    async def deliver(self, event: DropEvent) -> None:
        await self.publish(event)

    def heartbeat(self) -> int:
        return self._write_all(format_sse(json.dumps(self._clock.now().isoformat()), event="ping"))

    async def run_heartbeat(self) -> None:
        """Ping every channel each ``heartbeat_interval`` seconds until cancelled."""
        while True:
            await self._clock.sleep(self._heartbeat_interval)
            self.heartbeat()

    def _write_all(self, frame: str) -> int:
        with self._lock:
            channels = list(self._channels)

        delivered = 0
        for channel in channels:
            try:
                channel.write(frame)
            except (ChannelClosed, asyncio.QueueFull) as exc:
                log.warning("Dropping live channel after failed write: %r", exc)
                self.unsubscribe(channel)
            else:
                delivered += 1
        return delivered

    @property
    def consumer_count(self) -> int:
        return len(self._channels)
