"""Persistence layer for waypoint run state."""

from __future__ import annotations

import os
from typing import Optional

from ..config import WaypointConfig, load_config
from .inmemory import InMemoryWorkflowStateRepository
from .repository import WorkflowStateRepository
from .sqlite import SQLiteWorkflowStateRepository

_repository_instance: WorkflowStateRepository | None = None


def get_repository(
    database_url: Optional[str] = None, config: Optional[WaypointConfig] = None
) -> WorkflowStateRepository:
    """Factory function to obtain a run state repository.

    The backend is selected from ``database_url``, which can be provided
    explicitly, via ``WAYPOINT_DATABASE_URL`` or ``DATABASE_URL``, or from
    the loaded configuration. Supported schemes are ``sqlite://``,
    ``postgres://``/``postgresql://`` and ``redis://``. When nothing is
    configured an in-memory repository is returned.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("WAYPOINT_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.persistence.database_url
    )

    if not database_url:
        _repository_instance = InMemoryWorkflowStateRepository()
        return _repository_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _repository_instance = SQLiteWorkflowStateRepository(path)
    elif database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        from .postgres import PostgresWorkflowStateRepository

        _repository_instance = PostgresWorkflowStateRepository(database_url)
    elif database_url.startswith("redis://") or database_url.startswith("rediss://"):
        from .redis import RedisWorkflowStateRepository

        _repository_instance = RedisWorkflowStateRepository(
            database_url,
            prefix=config.persistence.redis_prefix,
            ttl=config.persistence.ttl,
        )
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _repository_instance


__all__ = [
    "WorkflowStateRepository",
    "InMemoryWorkflowStateRepository",
    "SQLiteWorkflowStateRepository",
    "get_repository",
]
