from __future__ import annotations

from datetime import datetime, timezone

import pytest

from core.detector import DropDetector, is_target_rarity
from core.errors import TransientUpstreamError
from models.event import LogEntry
from models.profile import ItemDetail

WHEN = datetime(2024, 5, 1, 3, 0, tzinfo=timezone.utc)


def _entry(item_id: str | None, rarity: str | None, name: str = "item") -> LogEntry:
    return LogEntry(occurred_at=WHEN, item_id=item_id, item_name=name, rarity=rarity, code=505)


@pytest.mark.parametrize("label", ["태초", "Ancient", "ANCIENT", "mythic", "Mythic Gear", "[태초] 무기"])
def test_target_rarity_labels(label: str) -> None:
    assert is_target_rarity(label)


@pytest.mark.parametrize("label", [None, "", "에픽", "Legendary", "레어", "unique"])
def test_other_rarity_labels(label: str | None) -> None:
    assert not is_target_rarity(label)


@pytest.mark.asyncio
async def test_detect_uses_entry_rarity_without_resolver(entity) -> None:
    entries = [_entry("a", "에픽"), _entry("b", "태초", "Sword"), _entry(None, "태초"), _entry("c", "mythic")]

    drops = await DropDetector().detect(entity, entries)

    assert [d.item_id for d in drops] == ["b", "c"]
    assert drops[0].item_name == "Sword"
    assert drops[0].entity_key == entity
    assert drops[0].dedupe_key == f"cain:char-1:b:{WHEN.isoformat()}"


@pytest.mark.asyncio
async def test_detail_lookup_is_authoritative(entity) -> None:
    requested: list[list[str]] = []

    async def resolve(item_ids: list[str]) -> dict[str, ItemDetail]:
        requested.append(item_ids)
        return {
            "a": ItemDetail("a", "Real Ancient", "태초"),
            "b": ItemDetail("b", "Just Epic", "에픽"),
        }

    entries = [_entry("a", "에픽", "row name"), _entry("b", "태초"), _entry("unknown", "태초"), _entry(None, "태초")]

    drops = await DropDetector(resolve_details=resolve).detect(entity, entries)

    assert requested == [["a", "b", "unknown"]]
    assert [(d.item_id, d.item_name) for d in drops] == [("a", "Real Ancient")]


@pytest.mark.asyncio
async def test_resolver_not_called_for_empty_input(entity) -> None:
    async def resolve(item_ids: list[str]) -> dict[str, ItemDetail]:
        raise AssertionError("should not be called")

    assert await DropDetector(resolve_details=resolve).detect(entity, [_entry(None, "태초")]) == []


@pytest.mark.asyncio
async def test_resolver_failure_propagates(entity) -> None:
    async def resolve(item_ids: list[str]) -> dict[str, ItemDetail]:
        raise TransientUpstreamError("down")

    with pytest.raises(TransientUpstreamError):
        await DropDetector(resolve_details=resolve).detect(entity, [_entry("a", "태초")])
