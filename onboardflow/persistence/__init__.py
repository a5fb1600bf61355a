"""Persistence layer for onboarding workflows."""

from __future__ import annotations

import logging
from typing import Optional

from ..config import OnboardflowConfig, load_config
from .inmemory import InMemoryWorkflowRepository
from .repository import LocalWorkflowLocks, WorkflowRepository
from .sqlite import SQLiteWorkflowRepository

logger = logging.getLogger(__name__)

_repository_instance: WorkflowRepository | None = None


def get_repository(
    database_url: Optional[str] = None, config: Optional[OnboardflowConfig] = None
) -> WorkflowRepository:
    """Factory function to obtain a workflow repository.

    The backend is selected from ``database_url``, which can be passed
    explicitly or taken from configuration (``load_config`` already applies the
    ``ONBOARDFLOW_DATABASE_URL`` and ``DATABASE_URL`` overrides). When no
    database is configured, an in-memory repository is returned.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = database_url or config.database_url

    if not database_url:
        _repository_instance = InMemoryWorkflowRepository()
        return _repository_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _repository_instance = SQLiteWorkflowRepository(path)
    elif database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        from .postgres import PostgresWorkflowRepository

        _repository_instance = PostgresWorkflowRepository(database_url)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    logger.debug(f"Using {type(_repository_instance).__name__} repository")
    return _repository_instance


__all__ = [
    "LocalWorkflowLocks",
    "WorkflowRepository",
    "SQLiteWorkflowRepository",
    "InMemoryWorkflowRepository",
    "get_repository",
]
