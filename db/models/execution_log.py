"""
db/models/execution_log.py

Append-only execution log for paginated request executions.

One table holds both the execution's own lifecycle row (``record_id`` equal to
``execution_id``) and one row per fetched page.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Boolean, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TimestampMixin


class ExecutionStatus:
    INITIALIZED = "initialized"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    ERROR = "error"

    TERMINAL = frozenset({COMPLETED, ERROR})


class ExecutionRecordType:
    EXECUTION = "execution"
    PAGE = "page"


class ExecutionLogRecord(Base, TimestampMixin):
    __tablename__ = "paginated_execution_logs"

    execution_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        comment="Equals execution_id for the execution's own lifecycle row",
    )
    record_type: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="execution, page",
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ExecutionStatus.INITIALIZED,
    )

    # Execution row fields.
    method: Mapped[str | None] = mapped_column(String(16), nullable=True)
    target_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    max_iterations: Mapped[int | None] = mapped_column(Integer, nullable=True)
    persist: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    sink_table: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Page row fields.
    page_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    items_in_page: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_items_processed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    request_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pagination_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    is_last: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    detail: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Final status detail (execution row) or error detail (page row)",
    )

    __table_args__ = (
        UniqueConstraint(
            "execution_id",
            "page_number",
            name="uq_paginated_execution_logs_execution_page",
        ),
        Index("ix_paginated_execution_logs_record_type_status", "record_type", "status"),
        Index("ix_paginated_execution_logs_updated_at", "updated_at"),
    )
