from __future__ import annotations

from datetime import datetime
from typing import Any

from consumers.base import EventConsumer


class ConsoleConsumer(EventConsumer):
    """Live-channel viewer that prints drops to stdout."""

    async def process(self, payload: dict[str, Any]) -> None:
        ts = datetime.fromisoformat(payload["time"]).strftime("%Y-%m-%d %H:%M")
        print(
            f"[{ts}] Server: {payload['serverId']}\n"
            f"  Character: {payload['characterId']}\n"
            f"  Drop: {payload['itemName']} ({payload['itemId']})\n",
            flush=True,
        )
