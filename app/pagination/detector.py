"""
Pagination strategy detection from the first page of a response.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from app.domain.pagination import PaginationType
from app.pagination.urls import next_link


def detect_pagination_type(headers: Mapping[str, str] | None, body: Any) -> str:
    """
    Classify a target API's pagination strategy.

    Checks run in a fixed order and the first match wins: Link header,
    bookmark, cursor, total count. Malformed or unexpected bodies simply
    fail each body check.
    """

    if next_link(headers) is not None:
        return PaginationType.LINK

    if not isinstance(body, Mapping):
        return PaginationType.NONE

    if body.get("bookmark"):
        return PaginationType.BOOKMARK

    if body.get("next_cursor") or body.get("cursor"):
        return PaginationType.CURSOR

    if total_count(body) is not None:
        return PaginationType.OFFSET

    return PaginationType.NONE


def total_count(body: Any) -> int | float | None:
    """
    Return the numeric ``total_count`` (preferred) or ``total`` field of a body.
    """

    if not isinstance(body, Mapping):
        return None
    for key in ("total_count", "total"):
        value = body.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
    return None

