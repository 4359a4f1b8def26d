"""
app/scheduler/jobs.py

APScheduler-based housekeeping for paginated executions.

Schedule
--------
  sweep_stale_executions - every ``EXECUTION_SWEEP_INTERVAL_MINUTES`` minutes

An execution whose background task died (process restart, crash) never
reaches a terminal status on its own. The sweep closes every non-terminal
execution without log activity for ``EXECUTION_STALE_AFTER_HOURS`` hours.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import get_execution_log_settings
from app.services.paginated_execution_service import (
    PaginatedExecutionService,
    get_paginated_execution_service,
)

logger = logging.getLogger(__name__)


def sweep_stale_executions(service: PaginatedExecutionService | None = None) -> int:
    """
    Close stale executions and return how many were closed.
    """
    logger.info("Scheduler: sweep_stale_executions starting")
    active_service = service or get_paginated_execution_service()
    try:
        recovered = active_service.recover_stale_executions()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Scheduler: sweep_stale_executions failed: %s", exc)
        return 0

    logger.info("Scheduler: sweep_stale_executions complete closed=%d", len(recovered))
    return len(recovered)


def build_scheduler() -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points. No job is registered when the sweep is
    disabled.
    """
    settings = get_execution_log_settings()
    scheduler = BackgroundScheduler(timezone="UTC")

    if settings.sweep_enabled:
        scheduler.add_job(
            sweep_stale_executions,
            trigger="interval",
            minutes=settings.sweep_interval_minutes,
            id="sweep_stale_executions",
            name="Stale paginated execution sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=600,
        )

    return scheduler
