from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable

from models.event import DropEvent, EntityKey, LogEntry
from models.profile import ItemDetail

log = logging.getLogger(__name__)

# Accepted spellings of the target rarity tier, matched as lowercase substrings.
TARGET_RARITY_TOKENS: frozenset[str] = frozenset({"mythic", "ancient", "태초"})

ItemDetailResolver = Callable[[list[str]], Awaitable[dict[str, ItemDetail]]]


def is_target_rarity(label: str | None, tokens: Iterable[str] = TARGET_RARITY_TOKENS) -> bool:
    if not label:
        return False
    folded = label.casefold()
    return any(token.casefold() in folded for token in tokens)


class DropDetector:
    """Reduces timeline entries to the drops of the target rarity tier.

    When an item-detail resolver is given, rarity and name come from the
    batched detail lookup and override whatever the timeline row carries;
    entries the lookup does not know are skipped.  Without a resolver the
    row's own rarity label is used.
    """

    def __init__(
        self,
        resolve_details: ItemDetailResolver | None = None,
        tokens: Iterable[str] = TARGET_RARITY_TOKENS,
    ) -> None:
        self._resolve_details = resolve_details
        self._tokens = frozenset(tokens)

    async def detect(self, entity_key: EntityKey, entries: list[LogEntry]) -> list[DropEvent]:
        identified = [e for e in entries if e.item_id]
        if len(identified) != len(entries):
            log.debug(
                "%s: skipped %d entr(ies) without an item id",
                entity_key,
                len(entries) - len(identified),
            )
        if not identified:
            return []

        details: dict[str, ItemDetail] | None = None
        if self._resolve_details is not None:
            details = await self._resolve_details([e.item_id for e in identified])

        drops: list[DropEvent] = []
        for entry in identified:
            name, rarity = entry.item_name, entry.rarity
            if details is not None:
                detail = details.get(entry.item_id)
                if detail is None:
                    continue
                name, rarity = detail.item_name or entry.item_name, detail.rarity

            if is_target_rarity(rarity, self._tokens):
                drops.append(DropEvent.create(
                    entity_key=entity_key,
                    item_id=entry.item_id,
                    item_name=name,
                    occurred_at=entry.occurred_at,
                ))
        return drops
