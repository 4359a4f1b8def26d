"""
Background fetch -> resolve -> aggregate -> log loop for one execution.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from typing import Any

from app.config import ExternalHTTPSettings, PaginationSettings
from app.connectors.page_fetcher import (
    INVALID_REQUEST_CODE,
    FetchOutcome,
    PageClientOrServerError,
    PageFetcher,
    PageOk,
    PageRateLimited,
    PageTransportFailure,
    describe_outcome,
)
from app.domain.pagination import ExecutionContext, ExecutionRequest, PageRecord, PageStatus
from app.logging_utils import log_event
from app.pagination import detect_pagination_type, extract_items, resolve_next_url
from app.services.execution_tracker import ExecutionTracker
from app.services.item_persister import ItemPersister, PersistenceProvenance
from db.base import utc_now
from db.models.execution_log import ExecutionStatus

logger = logging.getLogger(__name__)

RETRYABLE_SERVER_STATUS_CODES = {500, 502, 503, 504}

FetcherFactory = Callable[[], PageFetcher]


class ExecutionRunner:
    """
    Drives one execution from ``inProgress`` to ``completed`` or ``error``.

    Pages are fetched strictly one after another. Tracker writes are
    best-effort: a failed write is logged and counted, and the loop carries on
    exactly as if it had succeeded.
    """

    def __init__(
        self,
        *,
        tracker: ExecutionTracker,
        fetcher_factory: FetcherFactory,
        pagination_settings: PaginationSettings,
        http_settings: ExternalHTTPSettings,
        item_persister: ItemPersister | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._tracker = tracker
        self._fetcher_factory = fetcher_factory
        self._pagination_settings = pagination_settings
        self._http_settings = http_settings
        self._item_persister = item_persister
        self._sleep = sleep

    def run(self, execution_id: uuid.UUID, request: ExecutionRequest) -> ExecutionContext:
        ctx = ExecutionContext(execution_id=execution_id, current_url=request.url)
        log_event(
            logger,
            logging.INFO,
            "execution_started",
            execution_id=execution_id,
            method=request.method,
            url=request.url,
            max_iterations=request.max_iterations,
        )
        self._ensure_in_progress(ctx)

        fetcher: PageFetcher | None = None
        try:
            fetcher = self._fetcher_factory()
            while not ctx.finished:
                self._run_page(ctx, fetcher, request)
        except Exception as exc:
            logger.exception("Paginated execution failed id=%s", execution_id)
            if not ctx.finished:
                self._finish_with_error(
                    ctx,
                    page_number=ctx.last_recorded_page + 1,
                    response_status=None,
                    error={
                        "kind": "unhandled_error",
                        "error": "Failed to execute paginated request",
                        "details": f"{type(exc).__name__}: {exc}"[:2000],
                    },
                )
        finally:
            if fetcher is not None:
                fetcher.close()

        log_event(
            logger,
            logging.INFO,
            "execution_finished",
            execution_id=execution_id,
            status=ctx.final_status,
            **ctx.summary(),
        )
        return ctx

    def _run_page(self, ctx: ExecutionContext, fetcher: PageFetcher, request: ExecutionRequest) -> None:
        page_number = ctx.last_recorded_page + 1
        request_url = ctx.current_url
        outcome = self._fetch_with_retry(ctx, fetcher, request, request_url, page_number)

        if not isinstance(outcome, PageOk):
            self._finish_with_error(
                ctx,
                page_number=page_number,
                response_status=getattr(outcome, "status", None),
                error=describe_outcome(outcome),
                request_url=request_url,
            )
            return

        if page_number == 1:
            ctx.pagination_type = detect_pagination_type(outcome.headers, outcome.body)
            log_event(
                logger,
                logging.INFO,
                "pagination_detected",
                execution_id=ctx.execution_id,
                pagination_type=ctx.pagination_type,
            )

        items = extract_items(outcome.body, self._pagination_settings.collection_keys)

        if request.persist and request.sink_table and self._item_persister is not None:
            summary = self._item_persister.persist(
                request.sink_table,
                items,
                PersistenceProvenance(
                    execution_id=ctx.execution_id,
                    page_number=page_number,
                    source_url=request_url,
                ),
            )
            ctx.persisted_items += summary.persisted
            ctx.failed_items += summary.failed
            ctx.persistence_errors.extend(summary.errors)

        next_url = resolve_next_url(ctx.pagination_type, outcome.headers, outcome.body, request_url)
        is_last = next_url is None or page_number >= request.max_iterations
        # The running total only ever covers pages that get a record.
        ctx.total_items += len(items)

        log_event(
            logger,
            logging.INFO,
            "page_fetched",
            execution_id=ctx.execution_id,
            page_number=page_number,
            status=outcome.status,
            items_in_page=len(items),
            total_items=ctx.total_items,
            has_more_pages=next_url is not None,
            pagination_type=ctx.pagination_type,
        )

        record = PageRecord(
            execution_id=ctx.execution_id,
            page_number=page_number,
            items_in_page=len(items),
            total_items_processed=ctx.total_items,
            request_url=request_url,
            response_status=outcome.status,
            pagination_type=ctx.pagination_type,
            timestamp=utc_now(),
            is_last=is_last,
            status=PageStatus.COMPLETED,
        )
        if is_last:
            ctx.last_recorded_page = page_number
            ctx.final_status = ExecutionStatus.COMPLETED
            self._ensure_in_progress(ctx)
            self._track(
                ctx,
                "mark_completed",
                self._tracker.mark_completed,
                ctx.execution_id,
                ctx.summary(),
            )
            self._track(ctx, "append_page", self._tracker.append_page, record)
            return

        self._track(ctx, "append_page", self._tracker.append_page, record)
        ctx.last_recorded_page = page_number
        ctx.current_url = next_url

    def _fetch_with_retry(
        self,
        ctx: ExecutionContext,
        fetcher: PageFetcher,
        request: ExecutionRequest,
        url: str,
        page_number: int,
    ) -> FetchOutcome:
        """
        Fetch one page, retrying rate limits and transient failures in place.

        Retries never consume an iteration and never append a page record.
        """

        rate_limit_attempts = 0
        transient_attempts = 0
        while True:
            outcome = fetcher.fetch(request.method, url, request.headers, request.body)

            if isinstance(outcome, PageRateLimited):
                if rate_limit_attempts >= self._pagination_settings.max_rate_limit_retries:
                    return outcome
                rate_limit_attempts += 1
                ctx.rate_limit_retries += 1
                wait_seconds = self._pagination_settings.rate_limit_backoff_seconds
                log_event(
                    logger,
                    logging.WARNING,
                    "rate_limited_backoff",
                    execution_id=ctx.execution_id,
                    page_number=page_number,
                    attempt=rate_limit_attempts,
                    max_attempts=self._pagination_settings.max_rate_limit_retries,
                    wait_seconds=wait_seconds,
                )
                self._sleep(wait_seconds)
                continue

            if _is_transient(outcome):
                if transient_attempts >= self._http_settings.max_retries:
                    return outcome
                wait_seconds = self._http_settings.backoff_initial_seconds * (
                    self._http_settings.backoff_multiplier**transient_attempts
                )
                transient_attempts += 1
                ctx.transient_retries += 1
                log_event(
                    logger,
                    logging.WARNING,
                    "transient_failure_retry",
                    execution_id=ctx.execution_id,
                    page_number=page_number,
                    attempt=transient_attempts,
                    max_attempts=self._http_settings.max_retries,
                    wait_seconds=wait_seconds,
                    outcome=outcome.kind,
                )
                self._sleep(wait_seconds)
                continue

            return outcome

    def _finish_with_error(
        self,
        ctx: ExecutionContext,
        *,
        page_number: int,
        response_status: int | None,
        error: dict[str, Any],
        request_url: str | None = None,
    ) -> None:
        ctx.error = error
        ctx.final_status = ExecutionStatus.ERROR
        ctx.last_recorded_page = page_number
        log_event(
            logger,
            logging.ERROR,
            "execution_error",
            execution_id=ctx.execution_id,
            page_number=page_number,
            response_status=response_status,
            error=error.get("error"),
            kind=error.get("kind"),
        )
        self._ensure_in_progress(ctx)
        self._track(ctx, "mark_error", self._tracker.mark_error, ctx.execution_id, ctx.summary())
        self._track(
            ctx,
            "append_page",
            self._tracker.append_page,
            PageRecord(
                execution_id=ctx.execution_id,
                page_number=page_number,
                items_in_page=0,
                total_items_processed=ctx.total_items,
                request_url=request_url or ctx.current_url,
                response_status=response_status,
                pagination_type=ctx.pagination_type,
                timestamp=utc_now(),
                is_last=True,
                status=PageStatus.ERROR,
                detail=error,
            ),
        )

    def _track(
        self,
        ctx: ExecutionContext,
        operation: str,
        call: Callable[..., Any],
        *args: Any,
    ) -> bool:
        try:
            call(*args)
        except Exception as exc:
            ctx.log_write_failures += 1
            logger.exception(
                "Execution log write failed id=%s operation=%s error=%s",
                ctx.execution_id,
                operation,
                exc,
            )
            return False
        return True

    def _ensure_in_progress(self, ctx: ExecutionContext) -> None:
        """
        Store the ``inProgress`` transition unless it is already stored.

        Called on entry and again before each terminal transition, so a
        failed first write cannot leave ``initialized -> completed`` as the
        only remaining move.
        """

        if ctx.in_progress_stored:
            return
        ctx.in_progress_stored = self._track(
            ctx,
            "mark_in_progress",
            self._tracker.mark_in_progress,
            ctx.execution_id,
        )


def _is_transient(outcome: FetchOutcome) -> bool:
    if isinstance(outcome, PageTransportFailure):
        return outcome.code != INVALID_REQUEST_CODE
    return isinstance(outcome, PageClientOrServerError) and outcome.status in RETRYABLE_SERVER_STATUS_CODES
