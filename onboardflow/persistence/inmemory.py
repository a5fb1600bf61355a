"""In-memory implementation of the workflow repository."""

from __future__ import annotations

from typing import Dict, Optional, Sequence, TypeVar

from pydantic import BaseModel

from ..models import ExceptionRecord, IntegrationRecord, Step, Workflow, WorkflowDocument
from .repository import LocalWorkflowLocks, WorkflowRepository

ModelT = TypeVar("ModelT", bound=BaseModel)


def _copy(model: ModelT) -> ModelT:
    return model.model_copy(deep=True)


class InMemoryWorkflowRepository(LocalWorkflowLocks, WorkflowRepository):
    """Store onboarding state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Records are copied on the way in and
    out so callers never share state with the store.
    """

    def __init__(self) -> None:
        super().__init__()
        self._workflows: Dict[str, Workflow] = {}
        self._steps: Dict[str, Step] = {}
        self._integrations: Dict[str, IntegrationRecord] = {}
        self._exceptions: Dict[str, ExceptionRecord] = {}
        self._documents: Dict[str, WorkflowDocument] = {}

    # ------------------------------------------------------------------
    async def create_workflow(self, workflow: Workflow) -> None:
        self._workflows[workflow.id] = _copy(workflow)

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        wf = self._workflows.get(workflow_id)
        return _copy(wf) if wf else None

    async def list_workflows(
        self, status: Optional[str] = None, employee_id: Optional[str] = None
    ) -> list[Workflow]:
        workflows = [
            wf
            for wf in self._workflows.values()
            if (status is None or wf.status == status)
            and (employee_id is None or wf.employee_id == employee_id)
        ]
        workflows.sort(key=lambda wf: wf.created_at, reverse=True)
        return [_copy(wf) for wf in workflows]

    async def update_workflow(self, workflow: Workflow) -> None:
        if workflow.id in self._workflows:
            self._workflows[workflow.id] = _copy(workflow)

    async def delete_workflow(self, workflow_id: str) -> None:
        self._workflows.pop(workflow_id, None)
        for store in (self._steps, self._integrations, self._exceptions, self._documents):
            for key in [k for k, v in store.items() if v.workflow_id == workflow_id]:
                del store[key]

    # ------------------------------------------------------------------
    async def create_steps(self, steps: Sequence[Step]) -> None:
        for step in steps:
            self._steps[step.id] = _copy(step)

    async def get_step(self, step_id: str) -> Step | None:
        step = self._steps.get(step_id)
        return _copy(step) if step else None

    async def list_steps(self, workflow_id: str) -> list[Step]:
        steps = [s for s in self._steps.values() if s.workflow_id == workflow_id]
        steps.sort(key=lambda s: s.order_index)
        return [_copy(s) for s in steps]

    async def update_step(self, step: Step) -> None:
        if step.id in self._steps:
            self._steps[step.id] = _copy(step)

    # ------------------------------------------------------------------
    async def create_integration(self, record: IntegrationRecord) -> None:
        self._integrations[record.id] = _copy(record)

    async def get_integration(self, integration_id: str) -> IntegrationRecord | None:
        record = self._integrations.get(integration_id)
        return _copy(record) if record else None

    async def list_integrations(
        self, workflow_id: Optional[str] = None, status: Optional[str] = None
    ) -> list[IntegrationRecord]:
        return [
            _copy(r)
            for r in self._integrations.values()
            if (workflow_id is None or r.workflow_id == workflow_id)
            and (status is None or r.status == status)
        ]

    async def update_integration(self, record: IntegrationRecord) -> None:
        if record.id in self._integrations:
            self._integrations[record.id] = _copy(record)

    # ------------------------------------------------------------------
    async def create_exception(self, record: ExceptionRecord) -> None:
        self._exceptions[record.id] = _copy(record)

    async def get_exception(self, exception_id: str) -> ExceptionRecord | None:
        record = self._exceptions.get(exception_id)
        return _copy(record) if record else None

    async def list_exceptions(
        self, workflow_id: Optional[str] = None, status: Optional[str] = None
    ) -> list[ExceptionRecord]:
        return [
            _copy(r)
            for r in self._exceptions.values()
            if (workflow_id is None or r.workflow_id == workflow_id)
            and (status is None or r.resolution_status == status)
        ]

    async def update_exception(self, record: ExceptionRecord) -> None:
        if record.id in self._exceptions:
            self._exceptions[record.id] = _copy(record)

    # ------------------------------------------------------------------
    async def create_document(self, document: WorkflowDocument) -> None:
        self._documents[document.id] = _copy(document)

    async def list_documents(self, workflow_id: str) -> list[WorkflowDocument]:
        return [_copy(d) for d in self._documents.values() if d.workflow_id == workflow_id]
