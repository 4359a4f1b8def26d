"""
app/repositories/collected_item_repository.py

DB persistence for items aggregated by paginated executions.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.orm import Session

from db.models.collected_item import CollectedItem


class CollectedItemRepository:
    """
    Repository responsible for idempotent item writes keyed by derived id.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def upsert_item(
        self,
        *,
        table_name: str,
        item_id: str,
        payload: Any,
        execution_id: uuid.UUID,
        page_number: int,
        position: int,
        source_id: str | None = None,
        source_url: str | None = None,
    ) -> CollectedItem:
        """
        Insert or overwrite one item; writing the same id twice is a no-op change.
        """

        item = self._session.merge(
            CollectedItem(
                table_name=table_name,
                item_id=item_id,
                payload=payload,
                execution_id=execution_id,
                page_number=page_number,
                position=position,
                source_id=source_id,
                source_url=source_url,
            )
        )
        self._session.flush()
        return item

