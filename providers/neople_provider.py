from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from core.errors import TransientUpstreamError
from models.event import EntityKey, LogEntry, Timeline
from models.profile import CharacterProfile, ItemDetail
from providers.base import TimelineProvider
from providers.timeline_request import (
    ITEM_CODES,
    UPSTREAM_PAGE_LIMIT,
    TimelineRequest,
    character_path,
    chunked,
    parse_upstream_time,
)

DEFAULT_BASE_URL = "https://api.neople.co.kr/df"
DEFAULT_MAX_PAGES = 10
ITEM_DETAIL_BATCH = 15

log = logging.getLogger(__name__)


class NeopleProvider(TimelineProvider):
    """Provider adapter for the Dungeon Fighter Online open API.

    Timeline pages are followed through the ``next`` cursor of each
    response, up to ``max_pages`` pages per call so that a looping upstream
    cannot stall the scheduler.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        max_pages: int = DEFAULT_MAX_PAGES,
        page_limit: int = UPSTREAM_PAGE_LIMIT,
        codes: tuple[int, ...] = ITEM_CODES,
    ) -> None:
        super().__init__(client)
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._max_pages = max_pages
        self._page_limit = page_limit
        self._codes = codes

    @property
    def name(self) -> str:
        return "Neople"

    async def fetch_timeline(
        self, entity: EntityKey, start: datetime, end: datetime
    ) -> Timeline:
        request = TimelineRequest.first_page(
            entity, start, end, self._api_key, codes=self._codes, limit=self._page_limit
        )
        entries: list[LogEntry] = []
        truncated = False

        for page in range(1, self._max_pages + 1):
            body = await self._get_json(request.path, request.params)
            timeline = body.get("timeline") or {}
            if not isinstance(timeline, dict):
                raise TransientUpstreamError(f"[{self.name}] {entity}: timeline is not an object")
            rows = timeline.get("rows") or []
            if not isinstance(rows, list):
                raise TransientUpstreamError(f"[{self.name}] {entity}: timeline rows are not a list")
            entries.extend(self._parse_rows(entity, rows))

            cursor = timeline.get("next")
            if cursor is None or cursor == "":
                break
            if page == self._max_pages:
                log.warning(
                    "[%s] %s: stopped after %d timeline pages, cursor still present",
                    self.name,
                    entity,
                    page,
                )
                truncated = True
                break
            request = request.follow(cursor, self._api_key)

        return Timeline(entries=entries, truncated=truncated)

    async def fetch_item_details(self, item_ids: list[str]) -> dict[str, ItemDetail]:
        unique = list(dict.fromkeys(i for i in item_ids if i))
        details: dict[str, ItemDetail] = {}
        for batch in chunked(unique, ITEM_DETAIL_BATCH):
            body = await self._get_json(
                "/multi/items",
                (("itemIds", ",".join(batch)), ("apikey", self._api_key)),
            )
            rows = body.get("rows") or []
            if not isinstance(rows, list):
                raise TransientUpstreamError(f"[{self.name}] item detail rows are not a list")
            for row in rows:
                item_id = row.get("itemId") if isinstance(row, dict) else None
                if not item_id:
                    continue
                details[item_id] = ItemDetail(
                    item_id=item_id,
                    item_name=row.get("itemName") or "",
                    rarity=row.get("itemRarity"),
                )
        return details

    async def fetch_character(self, entity: EntityKey) -> CharacterProfile:
        body = await self._get_json(character_path(entity), (("apikey", self._api_key),))
        return CharacterProfile(
            entity_key=entity,
            character_name=body.get("characterName") or "",
            level=int(body.get("level") or 0),
            job_name=body.get("jobName") or "",
            job_grow_name=body.get("jobGrowName") or "",
        )

    async def _get_json(self, path: str, params: tuple[tuple[str, str], ...]) -> dict[str, Any]:
        try:
            resp = await self._client.get(f"{self._base_url}{path}", params=list(params))
        except httpx.HTTPError as exc:
            raise TransientUpstreamError(f"[{self.name}] HTTP error on {path}: {exc}") from exc

        if not resp.is_success:
            raise TransientUpstreamError(
                f"[{self.name}] Unexpected status {resp.status_code} on {path}"
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise TransientUpstreamError(f"[{self.name}] Undecodable body on {path}") from exc
        if not isinstance(body, dict):
            raise TransientUpstreamError(f"[{self.name}] Unexpected body shape on {path}")
        return body

    def _parse_rows(self, entity: EntityKey, rows: list[Any]) -> list[LogEntry]:
        entries: list[LogEntry] = []
        for row in rows:
            if not isinstance(row, dict):
                log.debug("[%s] %s: skipping non-object row %r", self.name, entity, row)
                continue
            try:
                code = int(row.get("code"))
            except (TypeError, ValueError):
                continue
            if code not in self._codes:
                continue

            try:
                occurred_at = parse_upstream_time(row.get("date", ""))
            except (ValueError, TypeError):
                log.debug("[%s] %s: skipping row with bad date %r", self.name, entity, row.get("date"))
                continue

            data = row.get("data") or {}
            if not isinstance(data, dict):
                log.debug("[%s] %s: skipping row with malformed data %r", self.name, entity, data)
                continue
            entries.append(LogEntry(
                occurred_at=occurred_at,
                item_id=data.get("itemId") or None,
                item_name=data.get("itemName") or "",
                rarity=data.get("itemRarity"),
                code=code,
            ))
        return entries
