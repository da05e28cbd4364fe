from __future__ import annotations

from dataclasses import dataclass

from models.event import EntityKey


@dataclass(frozen=True)
class CharacterProfile:
    entity_key: EntityKey
    character_name: str
    level: int
    job_name: str
    job_grow_name: str


@dataclass(frozen=True)
class ItemDetail:
    item_id: str
    item_name: str
    rarity: str | None
