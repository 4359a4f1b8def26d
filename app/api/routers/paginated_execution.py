"""
Paginated execution endpoints: submit, poll, summarize and list active runs.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status

from app.domain.pagination import ExecutionRecord, OpenExecution, PageRecord
from app.schemas.paginated_execution import (
    ActiveExecutionListResponse,
    ActiveExecutionResponse,
    ExecutionAcceptedResponse,
    ExecutionProgressResponse,
    ExecutionSummaryResponse,
    PageRecordResponse,
    PaginatedExecutionRequest,
)
from app.services.paginated_execution_service import (
    FastAPIBackgroundTaskExecutor,
    PaginatedExecutionService,
    PollState,
    get_paginated_execution_service,
)

router = APIRouter(prefix="/execute/paginated", tags=["paginated-execution"])


@router.post(
    "",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ExecutionAcceptedResponse,
)
def submit_paginated_execution(
    payload: PaginatedExecutionRequest,
    background_tasks: BackgroundTasks,
    service: PaginatedExecutionService = Depends(get_paginated_execution_service),
) -> ExecutionAcceptedResponse:
    try:
        request = service.build_request(
            method=payload.method,
            url=payload.url,
            headers=payload.headers,
            body=payload.body,
            query_params=payload.query_params,
            max_iterations=payload.max_iterations,
            persist=payload.persist,
            sink_table=payload.sink_table,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    execution = service.submit(
        executor=FastAPIBackgroundTaskExecutor(background_tasks),
        request=request,
    )
    return ExecutionAcceptedResponse(
        execution_id=execution.execution_id,
        status=execution.status,
        method=execution.method,
        url=execution.target_url,
        max_iterations=execution.max_iterations,
        timestamp=execution.created_at,
    )


@router.get("/active", response_model=ActiveExecutionListResponse)
def list_active_executions(
    window_hours: float | None = Query(
        default=None,
        alias="windowHours",
        gt=0,
        le=24 * 30,
        description="Only executions with log activity inside this window",
    ),
    service: PaginatedExecutionService = Depends(get_paginated_execution_service),
) -> ActiveExecutionListResponse:
    executions = service.list_active_executions(window_hours)
    return ActiveExecutionListResponse(
        window_hours=window_hours if window_hours is not None else service.active_window_hours,
        executions=[_to_active_response(item) for item in executions],
    )


@router.get("/{execution_id}", response_model=ExecutionProgressResponse)
def poll_paginated_execution(
    execution_id: UUID,
    service: PaginatedExecutionService = Depends(get_paginated_execution_service),
) -> ExecutionProgressResponse:
    poll = service.poll(execution_id)
    if poll.state == PollState.NOT_FOUND:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Execution not found: {execution_id}",
        )
    if poll.state == PollState.FINISHED:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Execution finished: {execution_id}",
        )
    return ExecutionProgressResponse(
        execution_id=execution_id,
        status=poll.execution.status,
        pages=[_to_page_response(page) for page in poll.pages],
    )


@router.get("/{execution_id}/summary", response_model=ExecutionSummaryResponse)
def get_paginated_execution_summary(
    execution_id: UUID,
    service: PaginatedExecutionService = Depends(get_paginated_execution_service),
) -> ExecutionSummaryResponse:
    execution = service.get_execution(execution_id)
    if execution is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Execution not found: {execution_id}",
        )
    pages = service.list_pages(execution_id)
    return _to_summary_response(
        execution,
        total_pages=len(pages),
        fully_complete=service.is_fully_complete(execution_id),
    )


def _to_page_response(page: PageRecord) -> PageRecordResponse:
    return PageRecordResponse(
        execution_id=page.execution_id,
        page_number=page.page_number,
        items_in_page=page.items_in_page,
        total_items_processed=page.total_items_processed,
        request_url=page.request_url,
        response_status=page.response_status,
        pagination_type=page.pagination_type,
        timestamp=page.timestamp,
        is_last=page.is_last,
        status=page.status,
        detail=page.detail,
    )


def _to_summary_response(
    execution: ExecutionRecord,
    *,
    total_pages: int,
    fully_complete: bool,
) -> ExecutionSummaryResponse:
    return ExecutionSummaryResponse(
        execution_id=execution.execution_id,
        status=execution.status,
        method=execution.method,
        url=execution.target_url,
        max_iterations=execution.max_iterations,
        persist=execution.persist,
        sink_table=execution.sink_table,
        created_at=execution.created_at,
        updated_at=execution.updated_at,
        fully_complete=fully_complete,
        total_pages=total_pages,
        detail=execution.detail,
    )


def _to_active_response(item: OpenExecution) -> ActiveExecutionResponse:
    return ActiveExecutionResponse(
        execution_id=item.execution.execution_id,
        status=item.execution.status,
        method=item.execution.method,
        url=item.execution.target_url,
        created_at=item.execution.created_at,
        last_activity_at=item.last_activity_at,
        last_page_number=item.last_page_number,
    )
