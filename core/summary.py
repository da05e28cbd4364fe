from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from core.detector import DropDetector
from models.event import DropEvent, EntityKey
from models.profile import CharacterProfile
from providers.base import TimelineProvider

DEFAULT_HISTORY_DAYS = 90


@dataclass(frozen=True)
class CharacterSummary:
    profile: CharacterProfile
    drops: list[DropEvent] = field(default_factory=list)


async def build_summary(
    provider: TimelineProvider,
    detector: DropDetector,
    entity: EntityKey,
    now: datetime,
    days: int = DEFAULT_HISTORY_DAYS,
) -> CharacterSummary:
    """Profile of *entity* plus its target-rarity drops over the last *days*, newest first.

    Reads upstream only; neither the dedupe cache nor any sink is touched.
    """
    profile = await provider.fetch_character(entity)
    timeline = await provider.fetch_timeline(entity, now - timedelta(days=days), now)
    drops = await detector.detect(entity, timeline.entries)
    drops.sort(key=lambda d: d.occurred_at, reverse=True)
    return CharacterSummary(profile=profile, drops=drops)
