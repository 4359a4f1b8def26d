"""
tests/conftest.py

Shared fixtures: a scripted page fetcher and an in-memory SQLite schema.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401 registers all ORM models on Base.metadata
from app.connectors.page_fetcher import FetchOutcome
from db.base import Base


class ScriptedFetcher:
    """
    Stand-in for ``PageFetcher`` that replays queued outcomes.

    Queued entries may be outcomes, exceptions (raised) or callables taking
    the requested URL. When the queue is empty ``responder`` answers.
    """

    def __init__(
        self,
        outcomes: list[Any] | None = None,
        responder: Callable[[str], FetchOutcome] | None = None,
    ) -> None:
        self._outcomes = list(outcomes or [])
        self._responder = responder
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def fetch(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        body: Any = None,
    ) -> FetchOutcome:
        self.calls.append({"method": method, "url": url, "headers": headers, "body": body})
        if self._outcomes:
            outcome = self._outcomes.pop(0)
        elif self._responder is not None:
            outcome = self._responder
        else:
            raise AssertionError(f"Unexpected fetch of {url}")

        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(url)
        return outcome

    def close(self) -> None:
        self.closed = True

    @property
    def urls(self) -> list[str]:
        return [call["url"] for call in self.calls]


class RecordingItemStore:
    """
    Thread-safe ``ItemStore`` that keeps writes in memory and fails on demand.
    """

    def __init__(self, fail_when: Callable[[Any], bool] | None = None) -> None:
        self._lock = threading.Lock()
        self._fail_when = fail_when
        self.writes: list[Any] = []

    def write_item(self, item: Any) -> None:
        if self._fail_when is not None and self._fail_when(item):
            raise RuntimeError(f"write rejected for {item.item_id}")
        with self._lock:
            self.writes.append(item)


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def record_sleep(sleeps: list[float]) -> Callable[[float], None]:
    return sleeps.append


@pytest.fixture
def session_factory() -> Iterator[sessionmaker[Session]]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(
        bind=engine,
        class_=Session,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    try:
        yield factory
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()
