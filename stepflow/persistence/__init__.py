"""Persistence layer for stepflow workflow instances."""

from __future__ import annotations

import os
from typing import Optional

from ..config import StepflowConfig, load_config
from .inmemory import InMemoryProfileStore
from .models import InstanceState
from .repository import ProfileStore
from .sqlite import SQLiteProfileStore

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresProfileStore
except ImportError:  # pragma: no cover - optional dependency
    PostgresProfileStore = None  # type: ignore


def get_store(
    database_url: Optional[str] = None, config: Optional[StepflowConfig] = None
) -> ProfileStore:
    """Factory function to build a profile store.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``STEPFLOW_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory store is returned. Every call builds a new
    store; callers own its lifetime.
    """

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("STEPFLOW_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )

    if not database_url:
        return InMemoryProfileStore()

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        return SQLiteProfileStore(path)
    if database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        if PostgresProfileStore is None:
            raise RuntimeError("Postgres support not available")
        return PostgresProfileStore(database_url)
    raise ValueError(f"Unsupported database backend: {database_url}")


__all__ = [
    "InstanceState",
    "ProfileStore",
    "InMemoryProfileStore",
    "SQLiteProfileStore",
    "PostgresProfileStore",
    "get_store",
]
