"""
Repository layer exports.
"""

from db.repositories.errors import ExecutionLogError, ExecutionNotFoundError, ExecutionStateError
from db.repositories.execution_log_repository import ExecutionLogRepository

__all__ = [
    "ExecutionLogRepository",
    "ExecutionLogError",
    "ExecutionNotFoundError",
    "ExecutionStateError",
]
