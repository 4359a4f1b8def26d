"""
app/schemas package marker.
"""

from app.schemas.paginated_execution import (
    ActiveExecutionListResponse,
    ActiveExecutionResponse,
    ExecutionAcceptedResponse,
    ExecutionProgressResponse,
    ExecutionSummaryResponse,
    HealthResponse,
    PageRecordResponse,
    PaginatedExecutionRequest,
)

__all__ = [
    "ActiveExecutionListResponse",
    "ActiveExecutionResponse",
    "ExecutionAcceptedResponse",
    "ExecutionProgressResponse",
    "ExecutionSummaryResponse",
    "HealthResponse",
    "PageRecordResponse",
    "PaginatedExecutionRequest",
]
