"""
db/models/collected_item.py

Items aggregated by paginated executions and persisted on request.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TimestampMixin


class CollectedItem(Base, TimestampMixin):
    __tablename__ = "collected_items"

    table_name: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Logical sink table chosen by the submitter",
    )
    item_id: Mapped[str] = mapped_column(
        String(512),
        primary_key=True,
        comment="Derived from source id, execution, page and position",
    )
    execution_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    page_number: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload: Mapped[Any] = mapped_column(JSONType, nullable=False)

    __table_args__ = (
        Index("ix_collected_items_execution_id", "execution_id"),
        Index("ix_collected_items_table_name_source_id", "table_name", "source_id"),
    )
