"""
Shared environment-driven database configuration helpers.
"""

from __future__ import annotations

import os
from pathlib import Path


def load_env_files() -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    project_root = Path(__file__).resolve().parents[1]
    for filename in (".env", ".env.local"):
        env_path = project_root / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


def normalize_postgres_url(url: str) -> str:
    """
    Normalize postgres URLs to SQLAlchemy's psycopg driver form.
    """

    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


DATABASE_URL_ENV_VARS = ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")


def configured_database_url() -> str | None:
    """
    Return the first non-empty database URL variable, in priority order.
    """

    load_env_files()
    for name in DATABASE_URL_ENV_VARS:
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return None


def has_database_url() -> bool:
    return configured_database_url() is not None


def resolve_database_url() -> str:
    """
    Resolve the execution log database URL in psycopg form.

    The first of DATABASE_URL, CLOUD_DATABASE_URL, LOCAL_DATABASE_URL that is
    set wins; startup validation reads the same order.
    """

    url = configured_database_url()
    if url is None:
        raise RuntimeError(
            "No database URL configured. Set one of: " + ", ".join(DATABASE_URL_ENV_VARS) + "."
        )
    return normalize_postgres_url(url)
