"""
app/domain/pagination.py

Domain models for paginated request executions.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class PaginationType:
    """
    Pagination strategies a target API can expose, fixed after page 1.
    """

    LINK = "link"
    BOOKMARK = "bookmark"
    CURSOR = "cursor"
    OFFSET = "offset"
    NONE = "none"

    ALL = (LINK, BOOKMARK, CURSOR, OFFSET, NONE)


class PageStatus:
    COMPLETED = "completed"
    ERROR = "error"

    TERMINAL = frozenset({COMPLETED, ERROR})


@dataclass(frozen=True)
class ExecutionRequest:
    """
    One submitted paginated request, already validated and normalized.

    ``url`` already carries the submitted query parameters.
    """

    method: str
    url: str
    max_iterations: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    persist: bool = False
    sink_table: str | None = None


@dataclass(frozen=True)
class ExecutionRecord:
    """
    Lifecycle record of one execution.
    """

    execution_id: uuid.UUID
    method: str
    target_url: str
    max_iterations: int
    persist: bool
    sink_table: str | None
    status: str
    created_at: datetime
    updated_at: datetime
    detail: dict[str, Any] | None = None


@dataclass(frozen=True)
class PageRecord:
    """
    Append-only audit entry describing the outcome of one page.
    """

    execution_id: uuid.UUID
    page_number: int
    items_in_page: int
    total_items_processed: int
    request_url: str
    response_status: int | None
    pagination_type: str | None
    timestamp: datetime
    is_last: bool
    status: str = PageStatus.COMPLETED
    detail: dict[str, Any] | None = None


@dataclass(frozen=True)
class OpenExecution:
    """
    A non-terminal execution together with the time of its latest log write.
    """

    execution: ExecutionRecord
    last_activity_at: datetime
    last_page_number: int


@dataclass
class ExecutionContext:
    """
    Mutable per-execution loop state, owned by one runner invocation.
    """

    execution_id: uuid.UUID
    current_url: str
    pagination_type: str | None = None
    last_recorded_page: int = 0
    total_items: int = 0
    persisted_items: int = 0
    failed_items: int = 0
    persistence_errors: list[str] = field(default_factory=list)
    rate_limit_retries: int = 0
    transient_retries: int = 0
    log_write_failures: int = 0
    in_progress_stored: bool = False
    final_status: str | None = None
    error: dict[str, Any] | None = None

    @property
    def finished(self) -> bool:
        return self.final_status is not None

    def summary(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "total_pages": self.last_recorded_page,
            "total_items": self.total_items,
            "pagination_type": self.pagination_type or PaginationType.NONE,
            "persisted_items": self.persisted_items,
            "failed_items": self.failed_items,
            "rate_limit_retries": self.rate_limit_retries,
            "transient_retries": self.transient_retries,
            "log_write_failures": self.log_write_failures,
        }
        if self.persistence_errors:
            payload["persistence_errors"] = self.persistence_errors[:20]
        if self.error is not None:
            payload["error"] = self.error
        return payload
