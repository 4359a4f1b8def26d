"""
tests/test_pagination_detector.py

Pure unit tests for pagination type detection on the first page.
"""

from __future__ import annotations

import pytest

from app.domain.pagination import PaginationType
from app.pagination.detector import detect_pagination_type, total_count

NEXT_LINK = '<https://api.example.com/x?page=2>; rel="next"'


def test_next_relation_in_link_header_is_link() -> None:
    assert detect_pagination_type({"link": NEXT_LINK}, {"items": []}) == PaginationType.LINK


def test_link_header_name_is_case_insensitive() -> None:
    assert detect_pagination_type({"Link": NEXT_LINK}, None) == PaginationType.LINK


def test_link_header_wins_over_body_fields() -> None:
    body = {"bookmark": "abc", "next_cursor": "c1", "total": 50}
    assert detect_pagination_type({"link": NEXT_LINK}, body) == PaginationType.LINK


def test_link_header_without_next_relation_is_ignored() -> None:
    headers = {"link": '<https://api.example.com/x?page=1>; rel="prev"'}
    assert detect_pagination_type(headers, {"items": [1]}) == PaginationType.NONE


def test_bookmark_body_without_link_is_bookmark() -> None:
    assert detect_pagination_type({}, {"bookmark": "abc"}) == PaginationType.BOOKMARK


def test_bookmark_wins_over_cursor() -> None:
    assert detect_pagination_type({}, {"bookmark": "abc", "cursor": "c1"}) == PaginationType.BOOKMARK


@pytest.mark.parametrize("field", ["next_cursor", "cursor"])
def test_cursor_fields_are_cursor(field: str) -> None:
    assert detect_pagination_type({}, {field: "c1", "data": []}) == PaginationType.CURSOR


@pytest.mark.parametrize("body", [{"total_count": 25}, {"total": 25}, {"total": 0}, {"total": 12.0}])
def test_numeric_total_is_offset(body: dict) -> None:
    assert detect_pagination_type({}, body) == PaginationType.OFFSET


@pytest.mark.parametrize(
    "body",
    [
        None,
        "",
        "plain text body",
        [1, 2, 3],
        {"items": [1, 2, 3]},
        {"bookmark": ""},
        {"next_cursor": None},
        {"total": "25"},
        {"total": True},
    ],
)
def test_unrecognized_bodies_are_none(body: object) -> None:
    assert detect_pagination_type({}, body) == PaginationType.NONE


def test_missing_headers_are_tolerated() -> None:
    assert detect_pagination_type(None, {"bookmark": "abc"}) == PaginationType.BOOKMARK


def test_total_count_prefers_total_count_field() -> None:
    assert total_count({"total_count": 40, "total": 10}) == 40
    assert total_count({"total_count": "40", "total": 10}) == 10
    assert total_count(["total"]) is None
