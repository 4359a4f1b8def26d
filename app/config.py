"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    """
    Read a comma-separated list from environment variables.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    values = tuple(item.strip() for item in raw_value.split(",") if item.strip())
    return values or default


@dataclass(frozen=True)
class PaginationSettings:
    """
    Runtime settings for the paginated execution loop.
    """

    default_max_iterations: int = 10
    max_iterations_limit: int = 1000
    rate_limit_backoff_seconds: float = 5.0
    max_rate_limit_retries: int = 5
    collection_keys: tuple[str, ...] = ("orders",)


@dataclass(frozen=True)
class ExternalHTTPSettings:
    """
    Outbound HTTP behavior for page fetches.
    """

    timeout_seconds: float = 15.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    rate_limit_per_second: float = 5.0


@dataclass(frozen=True)
class ItemPersistenceSettings:
    """
    Batching for optional item persistence.
    """

    batch_size: int = 5
    max_concurrency: int = 5


@dataclass(frozen=True)
class ExecutionLogSettings:
    """
    Retention windows used by the active listing and the stale sweep.
    """

    active_window_hours: float = 24.0
    stale_after_hours: float = 6.0
    sweep_interval_minutes: int = 15
    sweep_enabled: bool = True


@lru_cache(maxsize=1)
def get_pagination_settings() -> PaginationSettings:
    """
    Return cached pagination loop settings from environment variables.
    """

    return PaginationSettings(
        default_max_iterations=max(1, _get_int_env("PAGINATION_DEFAULT_MAX_ITERATIONS", 10)),
        max_iterations_limit=max(1, _get_int_env("PAGINATION_MAX_ITERATIONS_LIMIT", 1000)),
        rate_limit_backoff_seconds=max(
            0.0, _get_float_env("PAGINATION_RATE_LIMIT_BACKOFF_SECONDS", 5.0)
        ),
        max_rate_limit_retries=max(0, _get_int_env("PAGINATION_MAX_RATE_LIMIT_RETRIES", 5)),
        collection_keys=_get_csv_env("PAGINATION_COLLECTION_KEYS", ("orders",)),
    )


@lru_cache(maxsize=1)
def get_external_http_settings() -> ExternalHTTPSettings:
    """
    Return outbound HTTP settings from environment variables.
    """

    return ExternalHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("EXTERNAL_HTTP_TIMEOUT_SECONDS", 15.0)),
        max_retries=max(0, _get_int_env("EXTERNAL_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("EXTERNAL_HTTP_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("EXTERNAL_HTTP_BACKOFF_MULTIPLIER", 2.0)),
        rate_limit_per_second=max(0.1, _get_float_env("EXTERNAL_HTTP_RATE_LIMIT_PER_SECOND", 5.0)),
    )


@lru_cache(maxsize=1)
def get_item_persistence_settings() -> ItemPersistenceSettings:
    """
    Return item persistence settings from environment variables.
    """

    return ItemPersistenceSettings(
        batch_size=max(1, _get_int_env("ITEM_PERSIST_BATCH_SIZE", 5)),
        max_concurrency=max(1, _get_int_env("ITEM_PERSIST_MAX_CONCURRENCY", 5)),
    )


@lru_cache(maxsize=1)
def get_execution_log_settings() -> ExecutionLogSettings:
    """
    Return execution log retention settings from environment variables.
    """

    return ExecutionLogSettings(
        active_window_hours=max(0.1, _get_float_env("EXECUTION_ACTIVE_WINDOW_HOURS", 24.0)),
        stale_after_hours=max(0.1, _get_float_env("EXECUTION_STALE_AFTER_HOURS", 6.0)),
        sweep_interval_minutes=max(1, _get_int_env("EXECUTION_SWEEP_INTERVAL_MINUTES", 15)),
        sweep_enabled=_get_bool_env("EXECUTION_SWEEP_ENABLED", True),
    )
