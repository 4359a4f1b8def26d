"""
Run one paginated execution from CLI and print its summary.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from typing import Any

from app.services.execution_tracker import InMemoryExecutionTracker
from app.services.paginated_execution_service import (
    InlineTaskExecutor,
    PaginatedExecutionService,
    get_paginated_execution_service,
)
from db.config import has_database_url
from db.models.execution_log import ExecutionStatus


def _parse_pairs(values: list[str], separator: str, option: str) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for value in values:
        key, found, item = value.partition(separator)
        if not found or not key.strip():
            raise SystemExit(f"{option} expects KEY{separator}VALUE, got {value!r}")
        pairs[key.strip()] = item.strip()
    return pairs


def _parse_body(raw_body: str | None) -> Any:
    if raw_body is None:
        return None
    try:
        return json.loads(raw_body)
    except ValueError:
        return raw_body


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a paginated request execution.")
    parser.add_argument("url", help="Absolute URL of the first page.")
    parser.add_argument("--method", default="GET", help="HTTP method used for every page.")
    parser.add_argument(
        "--header",
        dest="headers",
        action="append",
        default=[],
        help="Request header as 'Name: value'. Repeatable.",
    )
    parser.add_argument(
        "--query",
        dest="query_params",
        action="append",
        default=[],
        help="Query parameter as key=value merged into the first URL. Repeatable.",
    )
    parser.add_argument("--body", default=None, help="Request body, JSON when it parses.")
    parser.add_argument("--max-iterations", type=int, default=None, help="Maximum pages to fetch.")
    parser.add_argument("--persist", action="store_true", help="Persist aggregated items.")
    parser.add_argument("--sink-table", default=None, help="Logical item table used with --persist.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Keep the execution log in memory and skip item persistence.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if args.dry_run:
        service = PaginatedExecutionService(tracker=InMemoryExecutionTracker())
    elif not has_database_url():
        parser.error("No database URL configured. Set DATABASE_URL or pass --dry-run.")
    else:
        service = get_paginated_execution_service()

    try:
        request = service.build_request(
            method=args.method,
            url=args.url,
            headers=_parse_pairs(args.headers, ":", "--header"),
            body=_parse_body(args.body),
            query_params=_parse_pairs(args.query_params, "=", "--query"),
            max_iterations=args.max_iterations,
            persist=args.persist and not args.dry_run,
            sink_table=args.sink_table,
        )
    except ValueError as exc:
        parser.error(str(exc))

    execution = service.submit(executor=InlineTaskExecutor(), request=request)
    finished = service.get_execution(execution.execution_id) or execution
    payload = {
        "execution_id": str(finished.execution_id),
        "status": finished.status,
        "fully_complete": service.is_fully_complete(finished.execution_id),
        "detail": finished.detail,
        "pages": [
            {
                "page_number": page.page_number,
                "items_in_page": page.items_in_page,
                "total_items_processed": page.total_items_processed,
                "response_status": page.response_status,
                "pagination_type": page.pagination_type,
                "is_last": page.is_last,
                "status": page.status,
            }
            for page in service.list_pages(finished.execution_id)
        ],
    }
    print(json.dumps(payload, indent=2, default=str))
    return 0 if finished.status == ExecutionStatus.COMPLETED else 1


if __name__ == "__main__":
    raise SystemExit(main())
