"""
Item extraction from heterogeneous response bodies.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

DEFAULT_COLLECTION_KEYS: tuple[str, ...] = ("orders",)


def extract_items(body: Any, collection_keys: Sequence[str] = DEFAULT_COLLECTION_KEYS) -> list[Any]:
    """
    Locate the item collection within a response body.

    Precedence: the body itself when it is a list, then a ``data`` list,
    then an ``items`` list, then the first domain-specific list named in
    ``collection_keys``, else the whole body as a single item. Empty bodies
    yield no items. The input is never mutated.
    """

    if body is None or body == "" or body == b"":
        return []

    if isinstance(body, list):
        return list(body)

    if isinstance(body, Mapping):
        for key in ("data", "items", *collection_keys):
            value = body.get(key)
            if isinstance(value, list):
                return list(value)

    return [body]
