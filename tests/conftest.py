from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx
import pytest

from models.event import EntityKey

BASE_URL = "https://api.test/df"
API_KEY = "test-key"


class ManualClock:
    """Clock whose time only moves when a test (or a sleep) advances it."""

    def __init__(self, start: datetime) -> None:
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
        await asyncio.sleep(0)


def timeline_row(
    item_id: str | None,
    when: str,
    rarity: str | None = "레어",
    name: str = "item",
    code: int = 505,
) -> dict[str, Any]:
    data: dict[str, Any] = {"itemName": name, "itemRarity": rarity}
    if item_id is not None:
        data["itemId"] = item_id
    return {"code": code, "name": "아이템 획득", "date": when, "data": data}


def timeline_body(rows: list[dict[str, Any]], next_cursor: Any = None) -> dict[str, Any]:
    return {"characterId": "char-1", "timeline": {"next": next_cursor, "rows": rows}}


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(datetime(2024, 5, 1, 3, 0, tzinfo=timezone.utc))


@pytest.fixture
def entity() -> EntityKey:
    return EntityKey(server_id="cain", character_id="char-1")
