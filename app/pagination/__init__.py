"""
app/pagination package marker.
"""

from app.pagination.aggregator import extract_items
from app.pagination.detector import detect_pagination_type, total_count
from app.pagination.resolver import RESOLVERS, resolve_next_url
from app.pagination.urls import merge_query_params, next_link, parse_link_header

__all__ = [
    "RESOLVERS",
    "detect_pagination_type",
    "extract_items",
    "merge_query_params",
    "next_link",
    "parse_link_header",
    "resolve_next_url",
    "total_count",
]
