"""
app/domain package marker.
"""

from app.domain.pagination import (
    ExecutionContext,
    ExecutionRecord,
    ExecutionRequest,
    OpenExecution,
    PageRecord,
    PageStatus,
    PaginationType,
)

__all__ = [
    "ExecutionContext",
    "ExecutionRecord",
    "ExecutionRequest",
    "OpenExecution",
    "PageRecord",
    "PageStatus",
    "PaginationType",
]
