"""
Execution tracking: lifecycle status plus the append-only per-page log.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.domain.pagination import (
    ExecutionRecord,
    ExecutionRequest,
    OpenExecution,
    PageRecord,
    PageStatus,
)
from db.base import utc_now
from db.models.execution_log import ExecutionLogRecord, ExecutionStatus
from db.repositories.errors import ExecutionNotFoundError, ExecutionStateError
from db.repositories.execution_log_repository import ExecutionLogRepository

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    ExecutionStatus.INITIALIZED: frozenset({ExecutionStatus.IN_PROGRESS, ExecutionStatus.ERROR}),
    ExecutionStatus.IN_PROGRESS: frozenset({ExecutionStatus.COMPLETED, ExecutionStatus.ERROR}),
    ExecutionStatus.COMPLETED: frozenset(),
    ExecutionStatus.ERROR: frozenset(),
}


class ExecutionTracker(Protocol):
    def start(self, request: ExecutionRequest) -> ExecutionRecord:
        ...

    def mark_in_progress(self, execution_id: uuid.UUID) -> ExecutionRecord:
        ...

    def mark_completed(
        self,
        execution_id: uuid.UUID,
        detail: dict[str, Any] | None = None,
    ) -> ExecutionRecord:
        ...

    def mark_error(
        self,
        execution_id: uuid.UUID,
        detail: dict[str, Any] | None = None,
    ) -> ExecutionRecord:
        ...

    def append_page(self, record: PageRecord) -> None:
        ...

    def list_pages(self, execution_id: uuid.UUID) -> list[PageRecord]:
        ...

    def is_fully_complete(self, execution_id: uuid.UUID) -> bool:
        ...

    def get_execution(self, execution_id: uuid.UUID) -> ExecutionRecord | None:
        ...

    def list_open_executions(self) -> list[OpenExecution]:
        ...


def check_transition(execution_id: uuid.UUID, current: str, target: str) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise ExecutionStateError(
            f"Execution {execution_id} cannot move from '{current}' to '{target}'."
        )


def records_fully_complete(execution: ExecutionRecord | None, pages: list[PageRecord]) -> bool:
    """
    True iff every known record of the execution is terminal and one page is last.
    """

    if execution is None or execution.status not in ExecutionStatus.TERMINAL:
        return False
    if not pages:
        return False
    if any(page.status not in PageStatus.TERMINAL for page in pages):
        return False
    return any(page.is_last for page in pages)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SQLAlchemyExecutionTracker:
    """
    Execution log backed by the ``paginated_execution_logs`` table.

    Each call runs in its own short session, so a failed page append never
    rolls back a status change or another page.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def start(self, request: ExecutionRequest) -> ExecutionRecord:
        with self._session_factory() as db:
            repository = ExecutionLogRepository(db)
            try:
                record = repository.create_execution(
                    execution_id=uuid.uuid4(),
                    method=request.method,
                    target_url=request.url,
                    max_iterations=request.max_iterations,
                    persist=request.persist,
                    sink_table=request.sink_table,
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
            return self._to_execution(record)

    def mark_in_progress(self, execution_id: uuid.UUID) -> ExecutionRecord:
        return self._transition(execution_id, ExecutionStatus.IN_PROGRESS, None)

    def mark_completed(
        self,
        execution_id: uuid.UUID,
        detail: dict[str, Any] | None = None,
    ) -> ExecutionRecord:
        return self._transition(execution_id, ExecutionStatus.COMPLETED, detail)

    def mark_error(
        self,
        execution_id: uuid.UUID,
        detail: dict[str, Any] | None = None,
    ) -> ExecutionRecord:
        return self._transition(execution_id, ExecutionStatus.ERROR, detail)

    def append_page(self, record: PageRecord) -> None:
        with self._session_factory() as db:
            repository = ExecutionLogRepository(db)
            try:
                repository.append_page(
                    execution_id=record.execution_id,
                    page_number=record.page_number,
                    items_in_page=record.items_in_page,
                    total_items_processed=record.total_items_processed,
                    request_url=record.request_url,
                    response_status=record.response_status,
                    pagination_type=record.pagination_type,
                    is_last=record.is_last,
                    status=record.status,
                    detail=record.detail,
                    timestamp=record.timestamp,
                )
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise ExecutionStateError(
                    f"Page {record.page_number} already recorded for execution {record.execution_id}."
                ) from exc
            except Exception:
                db.rollback()
                raise

    def list_pages(self, execution_id: uuid.UUID) -> list[PageRecord]:
        with self._session_factory() as db:
            rows = ExecutionLogRepository(db).list_pages(execution_id)
            return [self._to_page(row) for row in rows]

    def is_fully_complete(self, execution_id: uuid.UUID) -> bool:
        with self._session_factory() as db:
            repository = ExecutionLogRepository(db)
            execution_row = repository.get_execution(execution_id)
            execution = self._to_execution(execution_row) if execution_row is not None else None
            pages = [self._to_page(row) for row in repository.list_pages(execution_id)]
        return records_fully_complete(execution, pages)

    def get_execution(self, execution_id: uuid.UUID) -> ExecutionRecord | None:
        with self._session_factory() as db:
            row = ExecutionLogRepository(db).get_execution(execution_id)
            return self._to_execution(row) if row is not None else None

    def list_open_executions(self) -> list[OpenExecution]:
        with self._session_factory() as db:
            rows = ExecutionLogRepository(db).list_open_executions()
            return [
                OpenExecution(
                    execution=self._to_execution(row),
                    last_activity_at=_as_utc(last_activity_at),
                    last_page_number=last_page_number,
                )
                for row, last_activity_at, last_page_number in rows
            ]

    def _transition(
        self,
        execution_id: uuid.UUID,
        target: str,
        detail: dict[str, Any] | None,
    ) -> ExecutionRecord:
        with self._session_factory() as db:
            repository = ExecutionLogRepository(db)
            try:
                row = repository.get_execution(execution_id)
                if row is None:
                    raise ExecutionNotFoundError(f"Execution not found: {execution_id}")
                check_transition(execution_id, row.status, target)
                updated = repository.update_status(
                    execution_id=execution_id,
                    status=target,
                    detail=detail,
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
            return self._to_execution(updated)

    @staticmethod
    def _to_execution(row: ExecutionLogRecord) -> ExecutionRecord:
        return ExecutionRecord(
            execution_id=row.execution_id,
            method=row.method or "",
            target_url=row.target_url or "",
            max_iterations=row.max_iterations or 0,
            persist=bool(row.persist),
            sink_table=row.sink_table,
            status=row.status,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
            detail=row.detail,
        )

    @staticmethod
    def _to_page(row: ExecutionLogRecord) -> PageRecord:
        return PageRecord(
            execution_id=row.execution_id,
            page_number=row.page_number or 0,
            items_in_page=row.items_in_page or 0,
            total_items_processed=row.total_items_processed or 0,
            request_url=row.request_url or "",
            response_status=row.response_status,
            pagination_type=row.pagination_type,
            timestamp=_as_utc(row.created_at),
            is_last=row.is_last,
            status=row.status,
            detail=row.detail,
        )


class InMemoryExecutionTracker:
    """
    Process-local execution log for tests and dry runs.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._executions: dict[uuid.UUID, ExecutionRecord] = {}
        self._pages: dict[uuid.UUID, dict[int, PageRecord]] = {}

    def start(self, request: ExecutionRequest) -> ExecutionRecord:
        now = utc_now()
        record = ExecutionRecord(
            execution_id=uuid.uuid4(),
            method=request.method,
            target_url=request.url,
            max_iterations=request.max_iterations,
            persist=request.persist,
            sink_table=request.sink_table,
            status=ExecutionStatus.INITIALIZED,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._executions[record.execution_id] = record
            self._pages[record.execution_id] = {}
        return record

    def mark_in_progress(self, execution_id: uuid.UUID) -> ExecutionRecord:
        return self._transition(execution_id, ExecutionStatus.IN_PROGRESS, None)

    def mark_completed(
        self,
        execution_id: uuid.UUID,
        detail: dict[str, Any] | None = None,
    ) -> ExecutionRecord:
        return self._transition(execution_id, ExecutionStatus.COMPLETED, detail)

    def mark_error(
        self,
        execution_id: uuid.UUID,
        detail: dict[str, Any] | None = None,
    ) -> ExecutionRecord:
        return self._transition(execution_id, ExecutionStatus.ERROR, detail)

    def append_page(self, record: PageRecord) -> None:
        with self._lock:
            if record.execution_id not in self._executions:
                raise ExecutionNotFoundError(f"Execution not found: {record.execution_id}")
            pages = self._pages[record.execution_id]
            if record.page_number in pages:
                raise ExecutionStateError(
                    f"Page {record.page_number} already recorded for execution {record.execution_id}."
                )
            pages[record.page_number] = record

    def list_pages(self, execution_id: uuid.UUID) -> list[PageRecord]:
        with self._lock:
            pages = self._pages.get(execution_id, {})
            return [pages[number] for number in sorted(pages)]

    def is_fully_complete(self, execution_id: uuid.UUID) -> bool:
        return records_fully_complete(self.get_execution(execution_id), self.list_pages(execution_id))

    def get_execution(self, execution_id: uuid.UUID) -> ExecutionRecord | None:
        with self._lock:
            return self._executions.get(execution_id)

    def list_open_executions(self) -> list[OpenExecution]:
        with self._lock:
            open_executions: list[OpenExecution] = []
            for execution_id, execution in self._executions.items():
                if execution.status in ExecutionStatus.TERMINAL:
                    continue
                pages = list(self._pages[execution_id].values())
                last_activity_at = max(
                    [execution.updated_at, *(page.timestamp for page in pages)]
                )
                open_executions.append(
                    OpenExecution(
                        execution=execution,
                        last_activity_at=last_activity_at,
                        last_page_number=max((page.page_number for page in pages), default=0),
                    )
                )
        open_executions.sort(key=lambda item: item.last_activity_at, reverse=True)
        return open_executions

    def _transition(
        self,
        execution_id: uuid.UUID,
        target: str,
        detail: dict[str, Any] | None,
    ) -> ExecutionRecord:
        with self._lock:
            current = self._executions.get(execution_id)
            if current is None:
                raise ExecutionNotFoundError(f"Execution not found: {execution_id}")
            check_transition(execution_id, current.status, target)
            updated = replace(
                current,
                status=target,
                updated_at=utc_now(),
                detail=detail if detail is not None else current.detail,
            )
            self._executions[execution_id] = updated
            return updated
