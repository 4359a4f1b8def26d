"""
Submission, polling and housekeeping for paginated executions.
"""

from __future__ import annotations

import copy
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from functools import lru_cache
from typing import Any, Protocol
from urllib.parse import urlsplit

from fastapi import BackgroundTasks

from app.config import (
    ExecutionLogSettings,
    ExternalHTTPSettings,
    PaginationSettings,
    get_execution_log_settings,
    get_external_http_settings,
    get_pagination_settings,
)
from app.connectors.page_fetcher import PageFetcher
from app.domain.pagination import (
    ExecutionRecord,
    ExecutionRequest,
    OpenExecution,
    PageRecord,
    PageStatus,
)
from app.logging_utils import log_event
from app.pagination.urls import merge_query_params
from app.services.execution_runner import ExecutionRunner, FetcherFactory
from app.services.execution_tracker import ExecutionTracker
from app.services.item_persister import ItemPersister
from db.base import utc_now
from db.repositories.errors import ExecutionLogError

logger = logging.getLogger(__name__)

SUPPORTED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"})
MAX_SINK_TABLE_LENGTH = 255


class ExecutionTaskExecutor(Protocol):
    def submit(self, task: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        ...


class FastAPIBackgroundTaskExecutor:
    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def submit(self, task: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(task, *args, **kwargs)


class InlineTaskExecutor:
    """
    Runs the task on the calling thread. Used by the CLI and tests.
    """

    def submit(self, task: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        task(*args, **kwargs)


class PollState:
    NOT_FOUND = "not_found"
    FINISHED = "finished"
    RUNNING = "running"


@dataclass(frozen=True)
class ExecutionPoll:
    state: str
    execution: ExecutionRecord | None = None
    pages: list[PageRecord] = field(default_factory=list)


class PaginatedExecutionService:
    """
    Accepts paginated executions and hands each one to a background runner.

    The caller only ever sees the acknowledgment; everything that happens
    after it is reported through the execution log.
    """

    def __init__(
        self,
        *,
        tracker: ExecutionTracker,
        fetcher_factory: FetcherFactory | None = None,
        item_persister: ItemPersister | None = None,
        pagination_settings: PaginationSettings | None = None,
        http_settings: ExternalHTTPSettings | None = None,
        log_settings: ExecutionLogSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._tracker = tracker
        self._pagination_settings = pagination_settings or get_pagination_settings()
        self._http_settings = http_settings or get_external_http_settings()
        self._log_settings = log_settings or get_execution_log_settings()

        self._runner = ExecutionRunner(
            tracker=tracker,
            fetcher_factory=fetcher_factory or self._new_fetcher,
            item_persister=item_persister,
            pagination_settings=self._pagination_settings,
            http_settings=self._http_settings,
            sleep=sleep,
        )

    def _new_fetcher(self) -> PageFetcher:
        return PageFetcher(http_settings=self._http_settings)

    @property
    def runner(self) -> ExecutionRunner:
        return self._runner

    @property
    def active_window_hours(self) -> float:
        return self._log_settings.active_window_hours

    def build_request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        body: Any = None,
        query_params: dict[str, Any] | None = None,
        max_iterations: int | None = None,
        persist: bool = False,
        sink_table: str | None = None,
    ) -> ExecutionRequest:
        """
        Validate a submission and normalize it into an ``ExecutionRequest``.

        Raises ``ValueError`` describing the first problem found.
        """

        normalized_method = (method or "").strip().upper()
        if not normalized_method:
            raise ValueError("method is required.")
        if normalized_method not in SUPPORTED_METHODS:
            raise ValueError(
                f"Unsupported method '{normalized_method}'. "
                f"Allowed: {', '.join(sorted(SUPPORTED_METHODS))}."
            )

        normalized_url = (url or "").strip()
        if not normalized_url:
            raise ValueError("url is required.")
        parts = urlsplit(normalized_url)
        if parts.scheme.lower() not in {"http", "https"} or not parts.netloc:
            raise ValueError("url must be an absolute http(s) URL.")

        if max_iterations is None:
            max_iterations = self._pagination_settings.default_max_iterations
        if max_iterations < 1:
            raise ValueError("maxIterations must be at least 1.")
        if max_iterations > self._pagination_settings.max_iterations_limit:
            raise ValueError(
                f"maxIterations must not exceed {self._pagination_settings.max_iterations_limit}."
            )

        normalized_sink = (sink_table or "").strip() or None
        if persist and normalized_sink is None:
            raise ValueError("sinkTable is required when persist is true.")
        if normalized_sink is not None and len(normalized_sink) > MAX_SINK_TABLE_LENGTH:
            raise ValueError(f"sinkTable must be at most {MAX_SINK_TABLE_LENGTH} characters.")

        return ExecutionRequest(
            method=normalized_method,
            url=merge_query_params(normalized_url, query_params),
            max_iterations=max_iterations,
            headers={str(key): str(value) for key, value in (headers or {}).items()},
            body=body,
            persist=persist,
            sink_table=normalized_sink,
        )

    def submit(self, *, executor: ExecutionTaskExecutor, request: ExecutionRequest) -> ExecutionRecord:
        execution = self._tracker.start(request)
        log_event(
            logger,
            logging.INFO,
            "execution_submitted",
            execution_id=execution.execution_id,
            method=request.method,
            url=request.url,
            max_iterations=request.max_iterations,
            persist=request.persist,
        )

        try:
            executor.submit(self._runner.run, execution.execution_id, copy.deepcopy(request))
        except Exception:
            logger.exception("Failed to schedule paginated execution id=%s", execution.execution_id)
            self._close_execution(
                execution.execution_id,
                page_number=1,
                request_url=request.url,
                detail={
                    "kind": "scheduling_error",
                    "error": "Failed to schedule paginated execution.",
                },
            )
            raise

        return execution

    def poll(self, execution_id: uuid.UUID) -> ExecutionPoll:
        """
        Report progress of one execution.

        Fully complete executions report ``finished`` exactly like unknown
        ids report ``not_found``: neither carries pages.
        """

        execution = self._tracker.get_execution(execution_id)
        if execution is None:
            return ExecutionPoll(state=PollState.NOT_FOUND)
        if self._tracker.is_fully_complete(execution_id):
            return ExecutionPoll(state=PollState.FINISHED, execution=execution)
        return ExecutionPoll(
            state=PollState.RUNNING,
            execution=execution,
            pages=self._tracker.list_pages(execution_id),
        )

    def get_execution(self, execution_id: uuid.UUID) -> ExecutionRecord | None:
        return self._tracker.get_execution(execution_id)

    def list_pages(self, execution_id: uuid.UUID) -> list[PageRecord]:
        return self._tracker.list_pages(execution_id)

    def is_fully_complete(self, execution_id: uuid.UUID) -> bool:
        return self._tracker.is_fully_complete(execution_id)

    def list_active_executions(self, window_hours: float | None = None) -> list[OpenExecution]:
        window = window_hours if window_hours is not None else self._log_settings.active_window_hours
        cutoff = utc_now() - timedelta(hours=window)
        return [
            open_execution
            for open_execution in self._tracker.list_open_executions()
            if open_execution.last_activity_at >= cutoff
        ]

    def recover_stale_executions(self, stale_after_hours: float | None = None) -> list[uuid.UUID]:
        """
        Close executions that stopped making progress, e.g. after a crash.

        Each one is marked ``error`` and receives a synthesized last page
        record so pollers see it as fully complete.
        """

        threshold = (
            stale_after_hours if stale_after_hours is not None else self._log_settings.stale_after_hours
        )
        cutoff = utc_now() - timedelta(hours=threshold)
        recovered: list[uuid.UUID] = []
        for open_execution in self._tracker.list_open_executions():
            if open_execution.last_activity_at >= cutoff:
                continue
            execution = open_execution.execution
            try:
                self._close_execution(
                    execution.execution_id,
                    page_number=open_execution.last_page_number + 1,
                    request_url=execution.target_url,
                    detail={
                        "kind": "stale_execution",
                        "error": "Execution abandoned",
                        "details": (
                            f"No activity since {open_execution.last_activity_at.isoformat()}; "
                            f"last status '{execution.status}'."
                        ),
                        "total_pages": open_execution.last_page_number,
                    },
                )
            except ExecutionLogError as exc:
                logger.warning(
                    "Stale execution could not be closed id=%s error=%s",
                    execution.execution_id,
                    exc,
                )
                continue
            recovered.append(execution.execution_id)
            log_event(
                logger,
                logging.WARNING,
                "stale_execution_closed",
                execution_id=execution.execution_id,
                last_activity_at=open_execution.last_activity_at,
                last_page_number=open_execution.last_page_number,
            )
        return recovered

    def _close_execution(
        self,
        execution_id: uuid.UUID,
        *,
        page_number: int,
        request_url: str,
        detail: dict[str, Any],
    ) -> None:
        total_items = sum(page.items_in_page for page in self._tracker.list_pages(execution_id))
        self._tracker.mark_error(execution_id, detail)
        self._tracker.append_page(
            PageRecord(
                execution_id=execution_id,
                page_number=page_number,
                items_in_page=0,
                total_items_processed=total_items,
                request_url=request_url,
                response_status=None,
                pagination_type=None,
                timestamp=utc_now(),
                is_last=True,
                status=PageStatus.ERROR,
                detail=detail,
            )
        )


@lru_cache(maxsize=1)
def get_paginated_execution_service() -> PaginatedExecutionService:
    from app.services.execution_tracker import SQLAlchemyExecutionTracker
    from app.services.item_persister import get_item_persister
    from db.session import SessionLocal

    return PaginatedExecutionService(
        tracker=SQLAlchemyExecutionTracker(SessionLocal),
        item_persister=get_item_persister(),
    )
