from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class EntityKey:
    """Composite identifier of a tracked character (server + character)."""

    server_id: str
    character_id: str

    def __str__(self) -> str:
        return f"{self.server_id}:{self.character_id}"

    @classmethod
    def parse(cls, text: str) -> EntityKey:
        server_id, sep, character_id = text.strip().partition(":")
        if not sep or not server_id or not character_id:
            raise ValueError(f"Invalid entity key {text!r}, expected 'server:character'")
        return cls(server_id=server_id, character_id=character_id)


@dataclass(frozen=True)
class LogEntry:
    """One row of a character's activity timeline.

    Fields:
        occurred_at: When the activity happened (UTC).
        item_id:     Upstream item identifier, ``None`` on malformed rows.
        item_name:   Item name as printed in the timeline row.
        rarity:      Rarity label carried by the row, if any.
        code:        Upstream timeline event-type code.
    """

    occurred_at: datetime
    item_id: str | None
    item_name: str
    rarity: str | None
    code: int


@dataclass(frozen=True)
class DropEvent:
    """A detected rare drop; the unit of delivery to every sink."""

    dedupe_key: str
    entity_key: EntityKey
    item_id: str
    item_name: str
    occurred_at: datetime

    @classmethod
    def create(
        cls,
        entity_key: EntityKey,
        item_id: str,
        item_name: str,
        occurred_at: datetime,
    ) -> DropEvent:
        return cls(
            dedupe_key=f"{entity_key}:{item_id}:{occurred_at.isoformat()}",
            entity_key=entity_key,
            item_id=item_id,
            item_name=item_name,
            occurred_at=occurred_at,
        )

    def to_payload(self) -> dict[str, str]:
        """JSON-ready representation pushed to viewers and webhooks."""
        return {
            "id": self.dedupe_key,
            "type": "ancient-drop",
            "serverId": self.entity_key.server_id,
            "characterId": self.entity_key.character_id,
            "itemId": self.item_id,
            "itemName": self.item_name,
            "time": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class Timeline:
    """Entries fetched for one window.

    ``truncated`` is set when the page cap stopped pagination while the
    upstream still offered a further page.
    """

    entries: list[LogEntry]
    truncated: bool = False
