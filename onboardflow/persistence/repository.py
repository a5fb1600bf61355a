"""Repository abstraction for onboarding workflow persistence."""

from __future__ import annotations

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Optional, Protocol, Sequence

from ..models import ExceptionRecord, IntegrationRecord, Step, Workflow, WorkflowDocument


class WorkflowRepository(Protocol):
    """Protocol for onboarding persistence backends.

    Every call is expected to be atomic on its own. ``create_steps`` persists
    the whole batch or nothing.
    """

    def workflow_lock(self, workflow_id: str) -> AsyncContextManager[None]:
        """Per-workflow mutual exclusion for read-then-write sequences."""

    # Workflows
    async def create_workflow(self, workflow: Workflow) -> None:
        """Persist a new workflow."""

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        """Retrieve a workflow by id."""

    async def list_workflows(
        self, status: Optional[str] = None, employee_id: Optional[str] = None
    ) -> list[Workflow]:
        """Return workflows, newest first, optionally filtered."""

    async def update_workflow(self, workflow: Workflow) -> None:
        """Persist changes to an existing workflow."""

    async def delete_workflow(self, workflow_id: str) -> None:
        """Delete a workflow and everything attached to it."""

    # Steps
    async def create_steps(self, steps: Sequence[Step]) -> None:
        """Persist a batch of new steps atomically."""

    async def get_step(self, step_id: str) -> Step | None:
        """Retrieve a step by id."""

    async def list_steps(self, workflow_id: str) -> list[Step]:
        """Return the steps of a workflow ordered by ``order_index``."""

    async def update_step(self, step: Step) -> None:
        """Persist changes to an existing step."""

    # Integrations
    async def create_integration(self, record: IntegrationRecord) -> None:
        """Persist a new integration record."""

    async def get_integration(self, integration_id: str) -> IntegrationRecord | None:
        """Retrieve an integration record by id."""

    async def list_integrations(
        self, workflow_id: Optional[str] = None, status: Optional[str] = None
    ) -> list[IntegrationRecord]:
        """Return integration records in creation order, optionally filtered."""

    async def update_integration(self, record: IntegrationRecord) -> None:
        """Persist changes to an integration record."""

    # Exceptions
    async def create_exception(self, record: ExceptionRecord) -> None:
        """Persist a new exception."""

    async def get_exception(self, exception_id: str) -> ExceptionRecord | None:
        """Retrieve an exception by id."""

    async def list_exceptions(
        self, workflow_id: Optional[str] = None, status: Optional[str] = None
    ) -> list[ExceptionRecord]:
        """Return exceptions in creation order, optionally filtered."""

    async def update_exception(self, record: ExceptionRecord) -> None:
        """Persist changes to an exception."""

    # Documents
    async def create_document(self, document: WorkflowDocument) -> None:
        """Persist a workflow document."""

    async def list_documents(self, workflow_id: str) -> list[WorkflowDocument]:
        """Return documents attached to a workflow."""


class LocalWorkflowLocks:
    """Process-local per-workflow locks for single-process backends.

    Locks are held weakly and disappear once no task holds or awaits them.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @asynccontextmanager
    async def workflow_lock(self, workflow_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(workflow_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[workflow_id] = lock
        async with lock:
            yield
