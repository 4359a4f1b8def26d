"""
tests/test_paginated_execution_service.py

Submission validation, poll semantics, active listing and the stale sweep.
"""

from __future__ import annotations

import re
import uuid
from datetime import timedelta
from typing import Any
from unittest import mock

import pytest
from conftest import ScriptedFetcher

from app.config import ExecutionLogSettings, ExternalHTTPSettings, PaginationSettings
from app.connectors.page_fetcher import PageOk
from app.domain.pagination import ExecutionRequest, PageRecord, PageStatus
from app.scheduler.jobs import build_scheduler, sweep_stale_executions
from app.services.execution_tracker import InMemoryExecutionTracker
from app.services.paginated_execution_service import (
    InlineTaskExecutor,
    PaginatedExecutionService,
    PollState,
)
from db.base import utc_now
from db.models.execution_log import ExecutionStatus


class CapturingExecutor:
    def __init__(self) -> None:
        self.submitted: list[tuple[Any, tuple[Any, ...]]] = []

    def submit(self, task: Any, *args: Any, **kwargs: Any) -> None:
        self.submitted.append((task, args))


class RejectingExecutor:
    def submit(self, task: Any, *args: Any, **kwargs: Any) -> None:
        raise RuntimeError("worker pool closed")


def _service(fetcher: ScriptedFetcher | None = None, **overrides: Any) -> PaginatedExecutionService:
    values: dict[str, Any] = {
        "tracker": InMemoryExecutionTracker(),
        "fetcher_factory": (lambda: fetcher) if fetcher is not None else None,
        "pagination_settings": PaginationSettings(default_max_iterations=10, max_iterations_limit=50),
        "http_settings": ExternalHTTPSettings(),
        "log_settings": ExecutionLogSettings(active_window_hours=24.0, stale_after_hours=6.0),
        "sleep": lambda seconds: None,
    }
    values.update(overrides)
    return PaginatedExecutionService(**values)


def _page(execution_id, page_number: int, items: int = 1) -> PageRecord:
    return PageRecord(
        execution_id=execution_id,
        page_number=page_number,
        items_in_page=items,
        total_items_processed=items * page_number,
        request_url="https://api.example.com/orders",
        response_status=200,
        pagination_type="cursor",
        timestamp=utc_now(),
        is_last=False,
    )


class TestBuildRequest:
    def setup_method(self) -> None:
        self.service = _service()

    def test_normalizes_method_and_merges_query_params_once(self) -> None:
        request = self.service.build_request(
            method=" post ",
            url="https://api.example.com/orders?limit=5",
            headers={"X-Api-Key": "k"},
            body={"filter": "open"},
            query_params={"limit": 10, "status": "open", "empty": ""},
            persist=True,
            sink_table=" orders ",
        )

        assert request == ExecutionRequest(
            method="POST",
            url="https://api.example.com/orders?limit=10&status=open",
            max_iterations=10,
            headers={"X-Api-Key": "k"},
            body={"filter": "open"},
            persist=True,
            sink_table="orders",
        )

    @pytest.mark.parametrize(
        ("kwargs", "message"),
        [
            ({"method": "", "url": "https://api.example.com"}, "method is required"),
            ({"method": "TRACE", "url": "https://api.example.com"}, "Unsupported method"),
            ({"method": "GET", "url": ""}, "url is required"),
            ({"method": "GET", "url": "ftp://files.example.com/x"}, "absolute http(s) URL"),
            ({"method": "GET", "url": "/relative/path"}, "absolute http(s) URL"),
            ({"method": "GET", "url": "https://api.example.com", "max_iterations": 0}, "at least 1"),
            ({"method": "GET", "url": "https://api.example.com", "max_iterations": 51}, "must not exceed 50"),
            ({"method": "GET", "url": "https://api.example.com", "persist": True}, "sinkTable is required"),
            (
                {"method": "GET", "url": "https://api.example.com", "persist": True, "sink_table": "  "},
                "sinkTable is required",
            ),
        ],
    )
    def test_rejects_invalid_submissions(self, kwargs: dict[str, Any], message: str) -> None:
        with pytest.raises(ValueError, match=re.escape(message)):
            self.service.build_request(**kwargs)


def test_submit_acknowledges_before_running_and_hands_over_a_copy() -> None:
    service = _service(ScriptedFetcher([PageOk(status=200, headers={}, body={"items": [1]})]))
    request = service.build_request(method="GET", url="https://api.example.com/orders", headers={"A": "b"})
    executor = CapturingExecutor()

    execution = service.submit(executor=executor, request=request)

    assert execution.status == ExecutionStatus.INITIALIZED
    assert len(executor.submitted) == 1
    task, args = executor.submitted[0]
    assert args[0] == execution.execution_id
    assert args[1] == request
    assert args[1] is not request
    assert args[1].headers is not request.headers
    assert service.get_execution(execution.execution_id).status == ExecutionStatus.INITIALIZED

    task(*args)

    assert service.get_execution(execution.execution_id).status == ExecutionStatus.COMPLETED


def test_scheduling_failure_closes_the_execution() -> None:
    tracker = InMemoryExecutionTracker()
    service = _service(tracker=tracker)
    request = service.build_request(method="GET", url="https://api.example.com/orders")

    with pytest.raises(RuntimeError):
        service.submit(executor=RejectingExecutor(), request=request)

    (execution,) = [item for item in tracker._executions.values()]
    pages = tracker.list_pages(execution.execution_id)
    assert execution.status == ExecutionStatus.ERROR
    assert execution.detail["kind"] == "scheduling_error"
    assert len(pages) == 1
    assert pages[0].is_last
    assert pages[0].status == PageStatus.ERROR
    assert service.poll(execution.execution_id).state == PollState.FINISHED


def test_poll_reports_running_finished_and_not_found() -> None:
    tracker = InMemoryExecutionTracker()
    service = _service(tracker=tracker)
    request = service.build_request(method="GET", url="https://api.example.com/orders")
    execution_id = tracker.start(request).execution_id
    tracker.mark_in_progress(execution_id)
    tracker.append_page(_page(execution_id, 1))

    running = service.poll(execution_id)
    assert running.state == PollState.RUNNING
    assert [page.page_number for page in running.pages] == [1]

    tracker.mark_completed(execution_id)
    assert service.poll(execution_id).state == PollState.RUNNING

    tracker.append_page(
        PageRecord(
            execution_id=execution_id,
            page_number=2,
            items_in_page=0,
            total_items_processed=1,
            request_url=request.url,
            response_status=200,
            pagination_type="cursor",
            timestamp=utc_now(),
            is_last=True,
        )
    )
    finished = service.poll(execution_id)
    assert finished.state == PollState.FINISHED
    assert finished.pages == []

    missing = service.poll(uuid.uuid4())
    assert missing.state == PollState.NOT_FOUND
    assert missing.execution is None


def test_inline_run_through_the_service_finishes() -> None:
    fetcher = ScriptedFetcher(
        [
            PageOk(status=200, headers={}, body={"data": [1, 2], "next_cursor": "c2"}),
            PageOk(status=200, headers={}, body={"data": [3]}),
        ]
    )
    service = _service(fetcher)
    request = service.build_request(
        method="GET",
        url="https://api.example.com/orders",
        query_params={"limit": 2},
    )

    execution = service.submit(executor=InlineTaskExecutor(), request=request)

    assert fetcher.urls == [
        "https://api.example.com/orders?limit=2",
        "https://api.example.com/orders?limit=2&cursor=c2",
    ]
    assert service.is_fully_complete(execution.execution_id)
    assert service.get_execution(execution.execution_id).detail["total_items"] == 3


def test_active_executions_respect_the_window() -> None:
    tracker = InMemoryExecutionTracker()
    service = _service(tracker=tracker)
    request = service.build_request(method="GET", url="https://api.example.com/orders")
    running_id = tracker.start(request).execution_id
    tracker.mark_in_progress(running_id)
    done_id = tracker.start(request).execution_id
    tracker.mark_in_progress(done_id)
    tracker.mark_completed(done_id)

    active = service.list_active_executions()
    assert [item.execution.execution_id for item in active] == [running_id]

    later = utc_now() + timedelta(hours=2)
    with mock.patch("app.services.paginated_execution_service.utc_now", return_value=later):
        assert service.list_active_executions(window_hours=1) == []
        assert len(service.list_active_executions(window_hours=3)) == 1


def test_stale_executions_are_closed_with_a_last_record() -> None:
    tracker = InMemoryExecutionTracker()
    service = _service(tracker=tracker)
    request = service.build_request(method="GET", url="https://api.example.com/orders")
    stale_id = tracker.start(request).execution_id
    tracker.mark_in_progress(stale_id)
    tracker.append_page(_page(stale_id, 1, items=4))
    waiting_id = tracker.start(request).execution_id
    finished_id = tracker.start(request).execution_id
    tracker.mark_in_progress(finished_id)
    tracker.mark_completed(finished_id)

    later = utc_now() + timedelta(hours=7)
    with mock.patch("app.services.paginated_execution_service.utc_now", return_value=later):
        recovered = service.recover_stale_executions()

    assert set(recovered) == {stale_id, waiting_id}
    assert tracker.get_execution(finished_id).status == ExecutionStatus.COMPLETED

    pages = tracker.list_pages(stale_id)
    assert tracker.get_execution(stale_id).status == ExecutionStatus.ERROR
    assert [page.page_number for page in pages] == [1, 2]
    assert pages[1].is_last
    assert pages[1].status == PageStatus.ERROR
    assert pages[1].total_items_processed == 4
    assert pages[1].detail["kind"] == "stale_execution"
    assert service.poll(stale_id).state == PollState.FINISHED
    assert [page.page_number for page in tracker.list_pages(waiting_id)] == [1]


def test_fresh_executions_survive_the_sweep() -> None:
    tracker = InMemoryExecutionTracker()
    service = _service(tracker=tracker)
    request = service.build_request(method="GET", url="https://api.example.com/orders")
    execution_id = tracker.start(request).execution_id

    assert sweep_stale_executions(service) == 0
    assert service.get_execution(execution_id).status == ExecutionStatus.INITIALIZED


def test_sweep_job_logs_and_swallows_failures() -> None:
    service = mock.Mock(spec=PaginatedExecutionService)
    service.recover_stale_executions.side_effect = RuntimeError("db down")

    assert sweep_stale_executions(service) == 0


@pytest.mark.parametrize(("enabled", "job_ids"), [(True, ["sweep_stale_executions"]), (False, [])])
def test_build_scheduler_registers_the_sweep_when_enabled(enabled: bool, job_ids: list[str]) -> None:
    settings = ExecutionLogSettings(sweep_enabled=enabled, sweep_interval_minutes=5)
    with mock.patch("app.scheduler.jobs.get_execution_log_settings", return_value=settings):
        scheduler = build_scheduler()

    assert [job.id for job in scheduler.get_jobs()] == job_ids
