"""Drop Watcher -- entry point.

Assembles the detection pipeline:

    PollScheduler (one asyncio task per due subscription)
        -> NeopleProvider timeline fetch
        -> DropDetector
        -> DedupeCache
        -> sinks: Broadcaster (live channels) and WebhookNotifier

A shared httpx.AsyncClient is injected into the provider and the webhook.
A semaphore inside the scheduler caps concurrent upstream fetches.
"""
from __future__ import annotations

import asyncio
import logging

import httpx

from consumers.console import ConsoleConsumer
from consumers.webhook import WebhookNotifier
from core.broadcaster import Broadcaster
from core.clock import SystemClock
from core.config import Settings
from core.dedup import DedupeCache
from core.detector import DropDetector
from core.registry import SubscriptionRegistry
from core.scheduler import PollScheduler
from providers.neople_provider import NeopleProvider

log = logging.getLogger("main")


async def run(settings: Settings) -> None:
    clock = SystemClock()

    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        provider = NeopleProvider(
            client=client,
            api_key=settings.neople_api_key,
            base_url=settings.neople_api_base_url,
            max_pages=settings.max_pages,
            page_limit=settings.page_limit,
        )
        detector = DropDetector(resolve_details=provider.fetch_item_details)
        dedup = DedupeCache(
            ttl=settings.dedupe_ttl,
            sweep_interval=settings.sweep_interval_seconds,
            clock=clock,
        )
        broadcaster = Broadcaster(clock=clock, heartbeat_interval=settings.heartbeat_interval_seconds)
        webhook = WebhookNotifier(
            client=client,
            url=settings.webhook_url,
            timeout=settings.webhook_timeout_seconds,
        )

        registry = SubscriptionRegistry(
            clock=clock,
            initial_lookback=settings.initial_lookback,
            max_subscriptions=settings.max_subscriptions,
        )
        for entity_key in settings.watch:
            registry.subscribe(entity_key)

        scheduler = PollScheduler(
            registry=registry,
            provider=provider,
            detector=detector,
            dedup=dedup,
            sinks=[broadcaster, webhook],
            clock=clock,
            poll_interval=settings.poll_interval,
            slack=settings.poll_slack,
            tick_interval=settings.tick_interval_seconds,
            concurrency_limit=settings.concurrency_limit,
        )

        if not webhook.enabled:
            log.info("WEBHOOK_URL not set, webhook delivery disabled")

        viewers = [ConsoleConsumer(channel=broadcaster.subscribe())]

        tasks = [
            asyncio.create_task(scheduler.run(), name="scheduler"),
            asyncio.create_task(dedup.run_sweeper(), name="dedupe-sweeper"),
            asyncio.create_task(broadcaster.run_heartbeat(), name="heartbeat"),
            *(
                asyncio.create_task(v.run(), name=type(v).__name__)
                for v in viewers
            ),
        ]

        try:
            await asyncio.gather(*tasks)
        finally:
            await webhook.drain()


def main() -> None:
    settings = Settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if not settings.neople_api_key:
        log.warning("NEOPLE_API_KEY is not set; upstream requests will be rejected")

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        print("\nShutting down.")


if __name__ == "__main__":
    main()
