from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

import httpx

from models.event import EntityKey, Timeline
from models.profile import CharacterProfile, ItemDetail


class TimelineProvider(ABC):
    """Abstract base for upstream activity-log adapters.

    A concrete provider fetches a character's activity timeline and the
    lookups the detector needs, normalising them into model objects.

    A shared ``httpx.AsyncClient`` is injected at construction time so
    that every provider reuses one connection pool.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name (e.g. 'Neople')."""

    @abstractmethod
    async def fetch_timeline(
        self, entity: EntityKey, start: datetime, end: datetime
    ) -> Timeline:
        """Return the item-related timeline entries of *entity* in [start, end].

        Implementations raise ``TransientUpstreamError`` on any failure and
        never return a partial result.  A fetch cut short by a page cap is
        flagged ``truncated``.
        """

    @abstractmethod
    async def fetch_item_details(self, item_ids: list[str]) -> dict[str, ItemDetail]:
        """Resolve item identifiers to details, keyed by identifier.

        Unknown identifiers are simply absent from the result.
        """

    @abstractmethod
    async def fetch_character(self, entity: EntityKey) -> CharacterProfile:
        """Return the basic profile of *entity*."""
