"""
app/services package marker.
"""

from app.services.execution_runner import ExecutionRunner
from app.services.execution_tracker import (
    ExecutionTracker,
    InMemoryExecutionTracker,
    SQLAlchemyExecutionTracker,
)
from app.services.item_persister import (
    ItemPersister,
    PersistenceProvenance,
    PersistenceSummary,
    SQLAlchemyItemStore,
    get_item_persister,
)
from app.services.paginated_execution_service import (
    ExecutionPoll,
    FastAPIBackgroundTaskExecutor,
    InlineTaskExecutor,
    PaginatedExecutionService,
    PollState,
    get_paginated_execution_service,
)

__all__ = [
    "ExecutionPoll",
    "ExecutionRunner",
    "ExecutionTracker",
    "FastAPIBackgroundTaskExecutor",
    "InMemoryExecutionTracker",
    "InlineTaskExecutor",
    "ItemPersister",
    "PaginatedExecutionService",
    "PersistenceProvenance",
    "PersistenceSummary",
    "PollState",
    "SQLAlchemyExecutionTracker",
    "SQLAlchemyItemStore",
    "get_item_persister",
    "get_paginated_execution_service",
]
