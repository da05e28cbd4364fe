from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from conftest import API_KEY, BASE_URL, mock_client, timeline_body, timeline_row
from core.detector import DropDetector
from core.summary import build_summary
from providers.neople_provider import NeopleProvider


@pytest.mark.asyncio
async def test_summary_lists_recent_drops_newest_first(entity) -> None:
    now = datetime(2024, 5, 1, 3, 0, tzinfo=timezone.utc)
    windows: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/timeline"):
            windows.append((request.url.params["startDate"], request.url.params["endDate"]))
            return httpx.Response(200, json=timeline_body([
                timeline_row("old", "2024-03-01 10:00", "태초", "Old Ancient"),
                timeline_row("epic", "2024-04-01 10:00", "에픽"),
                timeline_row("new", "2024-04-20 10:00", "태초", "New Ancient"),
            ]))
        if request.url.path.endswith("/multi/items"):
            raise AssertionError("detector without resolver must not look up items")
        return httpx.Response(200, json={"characterName": "Hero", "level": 115, "jobName": "j", "jobGrowName": "g"})

    async with mock_client(handler) as client:
        provider = NeopleProvider(client=client, api_key=API_KEY, base_url=BASE_URL)
        summary = await build_summary(provider, DropDetector(), entity, now)

    assert summary.profile.character_name == "Hero"
    assert [d.item_id for d in summary.drops] == ["new", "old"]
    expected_start = (now - timedelta(days=90)).astimezone(timezone(timedelta(hours=9)))
    assert windows == [(expected_start.strftime("%Y-%m-%d %H:%M"), "2024-05-01 12:00")]
