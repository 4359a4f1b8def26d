"""
URL and Link-header helpers shared by the detector and resolver.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

_LINK_ENTRY = re.compile(r"<([^>]*)>((?:\s*;\s*[^;,]+)*)")
_LINK_PARAM = re.compile(r";\s*([^=;\s]+)\s*=\s*(\"[^\"]*\"|[^;,\s]+)")


def parse_link_header(value: str | None) -> dict[str, str]:
    """
    Map each relation of an RFC 8288 Link header to its target.

    ``rel`` values may hold several space-separated relations; the first
    target seen for a relation wins.
    """

    if not value:
        return {}

    links: dict[str, str] = {}
    for match in _LINK_ENTRY.finditer(value):
        target, raw_params = match.group(1).strip(), match.group(2)
        for name, raw_value in _LINK_PARAM.findall(raw_params):
            if name.lower() != "rel":
                continue
            for rel in raw_value.strip('"').lower().split():
                links.setdefault(rel, target)
    return links


def next_link(headers: Mapping[str, str] | None, base_url: str | None = None) -> str | None:
    """
    Return the absolute "next" target from a response's Link header, if any.
    """

    if not headers:
        return None
    header_value = None
    for key, value in headers.items():
        if key.lower() == "link":
            header_value = value
            break
    target = parse_link_header(header_value).get("next")
    if not target:
        return None
    if not base_url:
        return target
    try:
        return urljoin(base_url, target)
    except ValueError:
        # Unparseable target, e.g. an unbalanced IPv6 bracket.
        return None


def get_query_param(url: str, name: str) -> str | None:
    for key, value in parse_qsl(urlsplit(url).query, keep_blank_values=True):
        if key == name:
            return value
    return None


def set_query_param(url: str, name: str, value: Any) -> str:
    """
    Return ``url`` with ``name`` set to ``value``, replacing any existing values.
    """

    return merge_query_params(url, {name: value})


def merge_query_params(url: str, params: Mapping[str, Any] | None) -> str:
    """
    Merge ``params`` into ``url``'s query string.

    Blank keys and ``None``/empty values are skipped; keys already present in
    the URL are replaced rather than repeated.
    """

    cleaned: dict[str, str] = {}
    for key, value in (params or {}).items():
        name = str(key).strip() if key is not None else ""
        if not name or value is None:
            continue
        text = str(value).strip()
        if not text:
            continue
        cleaned[name] = text

    if not cleaned:
        return url

    parts = urlsplit(url)
    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in cleaned
    ]
    query.extend(cleaned.items())
    return urlunsplit(parts._replace(query=urlencode(query)))
