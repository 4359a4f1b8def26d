"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.collected_item import CollectedItem
from db.models.execution_log import ExecutionLogRecord, ExecutionRecordType, ExecutionStatus

__all__ = [
    "CollectedItem",
    "ExecutionLogRecord",
    "ExecutionRecordType",
    "ExecutionStatus",
]
