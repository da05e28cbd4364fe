"""Structured builder for paginated timeline requests.

Keeps the canonical base path, the query parameters and the credential
apart so that cursor resolution can be tested without any transport.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qsl, quote, urlsplit

from core.errors import MalformedPaginationCursor
from models.event import EntityKey

UPSTREAM_PAGE_LIMIT = 100
UPSTREAM_DATE_FORMAT = "%Y-%m-%d %H:%M"
KST = timezone(timedelta(hours=9), "KST")

# Item acquisition event-type codes of the character timeline.
ITEM_CODES: tuple[int, ...] = (
    501, 502, 504, 505, 506, 507, 508, 510, 511, 512, 513, 514, 515, 516, 517, 518, 519, 520,
)

_CREDENTIAL_PARAM = "apikey"
_TIMELINE_PARAMS = frozenset({"next", "startDate", "endDate", "limit", "code", _CREDENTIAL_PARAM})

Params = tuple[tuple[str, str], ...]


def format_upstream_time(value: datetime, *, ceil: bool = False) -> str:
    """Render *value* as minute-resolution Korea Standard Time.

    The upstream ignores seconds, so the window start is floored and the
    end ceiled to keep the scanned interval a superset of the requested one.
    """
    local = value.astimezone(KST)
    truncated = local.replace(second=0, microsecond=0)
    if ceil and truncated != local:
        truncated += timedelta(minutes=1)
    return truncated.strftime(UPSTREAM_DATE_FORMAT)


def parse_upstream_time(raw: str) -> datetime:
    return datetime.strptime(raw, UPSTREAM_DATE_FORMAT).replace(tzinfo=KST).astimezone(timezone.utc)


def character_path(entity: EntityKey) -> str:
    return (
        f"/servers/{quote(entity.server_id, safe='')}"
        f"/characters/{quote(entity.character_id, safe='')}"
    )


def timeline_path(entity: EntityKey) -> str:
    return f"{character_path(entity)}/timeline"


def resolve_cursor(cursor: object) -> list[tuple[str, str]]:
    """Turn an upstream ``next`` value into query parameters.

    Accepts an absolute URL, a relative path, a bare query string or an
    opaque token.  Only the query part of a URL is kept; the host and
    path of the canonical request always win.
    """
    if not isinstance(cursor, str) or not cursor.strip():
        raise MalformedPaginationCursor(f"Pagination cursor is not a string: {cursor!r}")

    raw = cursor.strip()
    if "://" in raw or raw.startswith("/") or raw.startswith("?"):
        query = urlsplit(raw).query
        if not query:
            raise MalformedPaginationCursor(f"Pagination cursor has no query string: {raw!r}")
        params = parse_qsl(query, keep_blank_values=True)
    else:
        params = parse_qsl(raw, keep_blank_values=True)
        if not any(key in _TIMELINE_PARAMS for key, _ in params):
            return [("next", raw)]

    if not params:
        raise MalformedPaginationCursor(f"Pagination cursor has no parameters: {raw!r}")
    return params


@dataclass(frozen=True)
class TimelineRequest:
    path: str
    params: Params

    @classmethod
    def first_page(
        cls,
        entity: EntityKey,
        start: datetime,
        end: datetime,
        api_key: str,
        *,
        codes: tuple[int, ...] = ITEM_CODES,
        limit: int = UPSTREAM_PAGE_LIMIT,
    ) -> TimelineRequest:
        params = (
            ("startDate", format_upstream_time(start)),
            ("endDate", format_upstream_time(end, ceil=True)),
            ("limit", str(max(1, min(limit, UPSTREAM_PAGE_LIMIT)))),
            ("code", ",".join(str(c) for c in codes)),
        )
        return cls(path=timeline_path(entity), params=params).with_credential(api_key)

    def follow(self, cursor: object, api_key: str) -> TimelineRequest:
        """Request for the page *cursor* points to, on the same base path."""
        params = tuple(resolve_cursor(cursor))
        return TimelineRequest(path=self.path, params=params).with_credential(api_key)

    def with_credential(self, api_key: str) -> TimelineRequest:
        """Replace whatever credential the params carry with *api_key*.

        A cursor may echo a blank, masked or stale key; it is never reused.
        """
        params = tuple((k, v) for k, v in self.params if k != _CREDENTIAL_PARAM)
        if api_key:
            params += ((_CREDENTIAL_PARAM, api_key),)
        return TimelineRequest(path=self.path, params=params)


def chunked(items: list[str], size: int) -> list[list[str]]:
    return [items[i * size:(i + 1) * size] for i in range(math.ceil(len(items) / size))]
