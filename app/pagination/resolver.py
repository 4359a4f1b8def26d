"""
Next-page resolution, one resolver per pagination type.

Each resolver is a pure function of the last response and the URL that
produced it. ``None`` means there is no further page.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from app.domain.pagination import PaginationType
from app.pagination.detector import total_count
from app.pagination.urls import get_query_param, next_link, set_query_param

DEFAULT_OFFSET = 0
DEFAULT_LIMIT = 10

Resolver = Callable[[Mapping[str, str], Any, str], "str | None"]


def resolve_link(headers: Mapping[str, str], body: Any, current_url: str) -> str | None:
    return next_link(headers, base_url=current_url)


def resolve_bookmark(headers: Mapping[str, str], body: Any, current_url: str) -> str | None:
    bookmark = body.get("bookmark") if isinstance(body, Mapping) else None
    if not bookmark:
        return None
    return set_query_param(current_url, "bookmark", bookmark)


def resolve_cursor(headers: Mapping[str, str], body: Any, current_url: str) -> str | None:
    if not isinstance(body, Mapping):
        return None
    cursor = body.get("next_cursor") or body.get("cursor")
    if not cursor:
        return None
    return set_query_param(current_url, "cursor", cursor)


def resolve_offset(headers: Mapping[str, str], body: Any, current_url: str) -> str | None:
    total = total_count(body)
    if total is None:
        return None

    offset = _int_param(current_url, "offset", DEFAULT_OFFSET)
    limit = _int_param(current_url, "limit", DEFAULT_LIMIT)
    if limit <= 0 or offset + limit >= total:
        return None
    return set_query_param(current_url, "offset", offset + limit)


def resolve_none(headers: Mapping[str, str], body: Any, current_url: str) -> str | None:
    return None


RESOLVERS: dict[str, Resolver] = {
    PaginationType.LINK: resolve_link,
    PaginationType.BOOKMARK: resolve_bookmark,
    PaginationType.CURSOR: resolve_cursor,
    PaginationType.OFFSET: resolve_offset,
    PaginationType.NONE: resolve_none,
}


def resolve_next_url(
    pagination_type: str | None,
    headers: Mapping[str, str] | None,
    body: Any,
    current_url: str,
) -> str | None:
    """
    Compute the next request URL, or ``None`` to terminate.
    """

    pagination_type = pagination_type or PaginationType.NONE
    if pagination_type not in PaginationType.ALL:
        raise ValueError(f"Unknown pagination type: {pagination_type!r}")
    return RESOLVERS[pagination_type](headers or {}, body, current_url)


def _int_param(url: str, name: str, default: int) -> int:
    raw = get_query_param(url, name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default
