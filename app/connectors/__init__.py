"""
app/connectors package marker.
"""

from app.connectors.page_fetcher import (
    FetchOutcome,
    PageAuthError,
    PageClientOrServerError,
    PageFetcher,
    PageOk,
    PageRateLimited,
    PageTransportFailure,
    classify_response,
    describe_outcome,
)

__all__ = [
    "FetchOutcome",
    "PageAuthError",
    "PageClientOrServerError",
    "PageFetcher",
    "PageOk",
    "PageRateLimited",
    "PageTransportFailure",
    "classify_response",
    "describe_outcome",
]
