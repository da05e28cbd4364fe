from __future__ import annotations

import asyncio
import logging

import httpx

from core.sinks import DropSink
from models.event import DropEvent

log = logging.getLogger(__name__)

DEFAULT_WEBHOOK_TIMEOUT = 10.0


def format_summary(event: DropEvent) -> str:
    when = event.occurred_at.strftime("%Y-%m-%d %H:%M UTC")
    return (
        f"[{event.entity_key.server_id}] {event.entity_key.character_id} "
        f"obtained {event.item_name} at {when}"
    )


class WebhookNotifier(DropSink):
    """Best-effort outbound POST of each drop to a configured webhook.

    One attempt per event, no retry and no queue.  ``deliver`` hands the POST
    to a background task so a slow endpoint never holds up the detection
    cycle; failures are logged and never reach the caller.  Without a URL
    every call is a no-op.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str | None = None,
        timeout: float = DEFAULT_WEBHOOK_TIMEOUT,
    ) -> None:
        self._client = client
        self._url = url
        self._timeout = timeout
        self._pending: set[asyncio.Task[bool]] = set()

    @property
    def enabled(self) -> bool:
        return bool(self._url)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def notify(self, event: DropEvent) -> bool:
        """Send *event*; return True when the endpoint accepted it."""
        if not self._url:
            return False

        body = {"content": format_summary(event), "drop": event.to_payload()}
        try:
            resp = await self._client.post(self._url, json=body, timeout=self._timeout)
        except httpx.HTTPError as exc:
            log.warning("Webhook delivery of %s failed: %s", event.dedupe_key, exc)
            return False

        if not resp.is_success:
            log.warning(
                "Webhook delivery of %s rejected with status %d",
                event.dedupe_key,
                resp.status_code,
            )
            return False
        return True

    async def deliver(self, event: DropEvent) -> None:
        if not self._url:
            return
        task = asyncio.create_task(self.notify(event), name=f"webhook-{event.dedupe_key}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for in-flight deliveries, e.g. before closing the client."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
