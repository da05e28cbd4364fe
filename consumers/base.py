from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from core.broadcaster import LiveChannel, parse_sse

log = logging.getLogger(__name__)


class EventConsumer(ABC):
    """Viewer-side consumer of a live channel, run as an asyncio task.

    Each consumer owns one ``LiveChannel`` and awaits frames from it,
    dispatching drop payloads to ``process()``.  Heartbeat frames are
    ignored.
    """

    def __init__(self, channel: LiveChannel) -> None:
        self._channel = channel

    @abstractmethod
    async def process(self, payload: dict[str, Any]) -> None:
        """Handle a single drop payload.  Subclasses implement this."""

    async def run(self) -> None:
        """Main consumer loop; returns when the channel is closed."""
        log.info("%s started, awaiting events", type(self).__name__)
        async for frame in self._channel:
            event_name, data = parse_sse(frame)
            if event_name != "message":
                continue
            try:
                payload = json.loads(data)
                await self.process(payload)
            except Exception:
                log.exception("%s failed processing frame %r", type(self).__name__, frame)
