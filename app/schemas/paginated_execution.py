"""
app/schemas/paginated_execution.py

Request and response schemas for paginated execution endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PaginatedExecutionRequest(CamelModel):
    """
    Body of ``POST /execute/paginated``.
    """

    method: str = Field(..., min_length=1, description="HTTP method used for every page")
    url: str = Field(..., min_length=1, description="Absolute URL of the first page")
    headers: dict[str, str] | None = None
    body: Any = None
    query_params: dict[str, Any] | None = Field(
        default=None,
        description="Merged into the first URL once; later pages follow the API's own links",
    )
    max_iterations: int | None = Field(default=None, ge=1)
    persist: bool = False
    sink_table: str | None = Field(
        default=None,
        validation_alias=AliasChoices("sinkTable", "sink_table", "tableName"),
        description="Logical item table used when persist is true",
    )


class ExecutionAcceptedResponse(CamelModel):
    execution_id: UUID
    status: str
    method: str
    url: str
    max_iterations: int
    timestamp: datetime


class PageRecordResponse(CamelModel):
    execution_id: UUID
    page_number: int = Field(..., ge=1)
    items_in_page: int = Field(..., ge=0)
    total_items_processed: int = Field(..., ge=0)
    request_url: str
    response_status: int | None = None
    pagination_type: str | None = None
    timestamp: datetime
    is_last: bool
    status: str
    detail: dict[str, Any] | None = None


class ExecutionProgressResponse(CamelModel):
    execution_id: UUID
    status: str
    pages: list[PageRecordResponse] = Field(default_factory=list)


class ExecutionSummaryResponse(CamelModel):
    """
    Lifecycle record of one execution, available before and after it finishes.
    """

    execution_id: UUID
    status: str
    method: str
    url: str
    max_iterations: int
    persist: bool
    sink_table: str | None = None
    created_at: datetime
    updated_at: datetime
    fully_complete: bool
    total_pages: int = Field(..., ge=0)
    detail: dict[str, Any] | None = None


class ActiveExecutionResponse(CamelModel):
    execution_id: UUID
    status: str
    method: str
    url: str
    created_at: datetime
    last_activity_at: datetime
    last_page_number: int = Field(..., ge=0)


class ActiveExecutionListResponse(CamelModel):
    window_hours: float
    executions: list[ActiveExecutionResponse] = Field(default_factory=list)


class HealthResponse(CamelModel):
    status: str
    service: str
