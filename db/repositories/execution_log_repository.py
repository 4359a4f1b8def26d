"""
Repository for execution lifecycle rows and append-only page rows.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from db.models.execution_log import ExecutionLogRecord, ExecutionRecordType, ExecutionStatus


class ExecutionLogRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_execution(
        self,
        *,
        execution_id: uuid.UUID,
        method: str,
        target_url: str,
        max_iterations: int,
        persist: bool,
        sink_table: str | None,
    ) -> ExecutionLogRecord:
        record = ExecutionLogRecord(
            execution_id=execution_id,
            record_id=execution_id,
            record_type=ExecutionRecordType.EXECUTION,
            status=ExecutionStatus.INITIALIZED,
            method=method,
            target_url=target_url,
            max_iterations=max_iterations,
            persist=persist,
            sink_table=sink_table,
            is_last=False,
        )
        self._session.add(record)
        self._session.flush()
        self._session.refresh(record)
        return record

    def get_execution(self, execution_id: uuid.UUID) -> ExecutionLogRecord | None:
        return self._session.get(ExecutionLogRecord, (execution_id, execution_id))

    def update_status(
        self,
        *,
        execution_id: uuid.UUID,
        status: str,
        detail: dict[str, Any] | None = None,
    ) -> ExecutionLogRecord | None:
        record = self.get_execution(execution_id)
        if record is None:
            return None
        record.status = status
        if detail is not None:
            record.detail = detail
        self._session.flush()
        return record

    def append_page(
        self,
        *,
        execution_id: uuid.UUID,
        page_number: int,
        items_in_page: int,
        total_items_processed: int,
        request_url: str,
        response_status: int | None,
        pagination_type: str | None,
        is_last: bool,
        status: str,
        detail: dict[str, Any] | None,
        timestamp: datetime,
    ) -> ExecutionLogRecord:
        record = ExecutionLogRecord(
            execution_id=execution_id,
            record_id=uuid.uuid4(),
            record_type=ExecutionRecordType.PAGE,
            status=status,
            page_number=page_number,
            items_in_page=items_in_page,
            total_items_processed=total_items_processed,
            request_url=request_url,
            response_status=response_status,
            pagination_type=pagination_type,
            is_last=is_last,
            detail=detail,
            created_at=timestamp,
            updated_at=timestamp,
        )
        self._session.add(record)
        self._session.flush()
        return record

    def list_pages(self, execution_id: uuid.UUID) -> list[ExecutionLogRecord]:
        stmt: Select[tuple[ExecutionLogRecord]] = (
            select(ExecutionLogRecord)
            .where(
                ExecutionLogRecord.execution_id == execution_id,
                ExecutionLogRecord.record_type == ExecutionRecordType.PAGE,
            )
            .order_by(ExecutionLogRecord.page_number.asc())
        )
        return list(self._session.scalars(stmt).all())

    def list_open_executions(self) -> list[tuple[ExecutionLogRecord, datetime, int]]:
        """
        Return non-terminal execution rows with their latest write time and
        highest recorded page number.
        """

        activity = (
            select(
                ExecutionLogRecord.execution_id.label("execution_id"),
                func.max(ExecutionLogRecord.updated_at).label("last_activity_at"),
                func.max(ExecutionLogRecord.page_number).label("last_page_number"),
            )
            .group_by(ExecutionLogRecord.execution_id)
            .subquery()
        )
        stmt = (
            select(ExecutionLogRecord, activity.c.last_activity_at, activity.c.last_page_number)
            .join(activity, activity.c.execution_id == ExecutionLogRecord.execution_id)
            .where(
                ExecutionLogRecord.record_type == ExecutionRecordType.EXECUTION,
                ExecutionLogRecord.status.not_in(sorted(ExecutionStatus.TERMINAL)),
            )
            .order_by(activity.c.last_activity_at.desc())
        )
        return [
            (record, last_activity_at, last_page_number or 0)
            for record, last_activity_at, last_page_number in self._session.execute(stmt).all()
        ]
