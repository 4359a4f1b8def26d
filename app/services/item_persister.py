"""
Optional persistence of aggregated items into a durable item store.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Protocol

from sqlalchemy.orm import Session

from app.config import get_item_persistence_settings
from app.logging_utils import log_event
from app.repositories.collected_item_repository import CollectedItemRepository

logger = logging.getLogger(__name__)

_MAX_REPORTED_ERRORS = 20


@dataclass(frozen=True)
class PersistenceProvenance:
    """
    Where a page of items came from.
    """

    execution_id: uuid.UUID
    page_number: int
    source_url: str | None = None


@dataclass(frozen=True)
class PersistenceSummary:
    persisted: int
    failed: int
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ItemWrite:
    table_name: str
    item_id: str
    payload: Any
    execution_id: uuid.UUID
    page_number: int
    position: int
    source_id: str | None
    source_url: str | None


class ItemStore(Protocol):
    def write_item(self, item: ItemWrite) -> None:
        ...


class SQLAlchemyItemStore:
    """
    Writes each item in its own short session so one failure stays local.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def write_item(self, item: ItemWrite) -> None:
        with self._session_factory() as db:
            try:
                CollectedItemRepository(db).upsert_item(
                    table_name=item.table_name,
                    item_id=item.item_id,
                    payload=item.payload,
                    execution_id=item.execution_id,
                    page_number=item.page_number,
                    position=item.position,
                    source_id=item.source_id,
                    source_url=item.source_url,
                )
                db.commit()
            except Exception:
                db.rollback()
                raise


def source_id_of(item: Any) -> str | None:
    """
    Return the item's own identifier when its payload carries one.
    """

    if not isinstance(item, dict):
        return None
    value = item.get("id")
    if value is None or value == "":
        return None
    return str(value)


def derive_item_id(item: Any, provenance: PersistenceProvenance, position: int) -> str:
    """
    Deterministic id so re-persisting the same page overwrites instead of duplicating.
    """

    parts = [source_id_of(item), str(provenance.execution_id), str(provenance.page_number), str(position)]
    return "_".join(part for part in parts if part is not None)


class ItemPersister:
    """
    Writes items in fixed-size batches with bounded fan-out per batch.

    Every batch is fully awaited before the next one starts, and the call
    returns only after all items of the page were attempted.
    """

    def __init__(
        self,
        *,
        store: ItemStore,
        batch_size: int = 5,
        max_concurrency: int = 5,
    ) -> None:
        self._store = store
        self._batch_size = max(1, batch_size)
        self._max_concurrency = max(1, max_concurrency)

    def persist(
        self,
        table_name: str,
        items: Sequence[Any],
        provenance: PersistenceProvenance,
    ) -> PersistenceSummary:
        if not items:
            return PersistenceSummary(persisted=0, failed=0)

        writes = [
            ItemWrite(
                table_name=table_name,
                item_id=derive_item_id(item, provenance, position),
                payload=item,
                execution_id=provenance.execution_id,
                page_number=provenance.page_number,
                position=position,
                source_id=source_id_of(item),
                source_url=provenance.source_url,
            )
            for position, item in enumerate(items)
        ]

        persisted = 0
        failed = 0
        errors: list[str] = []
        workers = min(self._max_concurrency, self._batch_size)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="item-persist") as pool:
            for start in range(0, len(writes), self._batch_size):
                batch = writes[start : start + self._batch_size]
                futures = [(write, pool.submit(self._store.write_item, write)) for write in batch]
                for write, future in futures:
                    try:
                        future.result()
                        persisted += 1
                    except Exception as exc:
                        failed += 1
                        message = f"{write.item_id}: {type(exc).__name__}: {exc}"
                        if len(errors) < _MAX_REPORTED_ERRORS:
                            errors.append(message[:500])
                        log_event(
                            logger,
                            logging.WARNING,
                            "item_persist_failed",
                            execution_id=provenance.execution_id,
                            page_number=provenance.page_number,
                            table_name=table_name,
                            item_id=write.item_id,
                            error=str(exc),
                        )

        return PersistenceSummary(persisted=persisted, failed=failed, errors=errors)


@lru_cache(maxsize=1)
def get_item_persister() -> ItemPersister:
    from db.session import SessionLocal

    settings = get_item_persistence_settings()
    return ItemPersister(
        store=SQLAlchemyItemStore(SessionLocal),
        batch_size=settings.batch_size,
        max_concurrency=settings.max_concurrency,
    )
