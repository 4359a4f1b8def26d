"""
Repository-layer exceptions for the execution log.
"""

from __future__ import annotations


class ExecutionLogError(Exception):
    """Base exception for execution log failures."""


class ExecutionNotFoundError(ExecutionLogError):
    """Raised when an execution id has no lifecycle record."""


class ExecutionStateError(ExecutionLogError):
    """Raised when a status transition is requested out of order."""
