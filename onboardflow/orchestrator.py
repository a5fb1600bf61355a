"""Onboarding workflow orchestrator."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .constants import (
    BACKGROUND_CHECK,
    DEFAULT_EXPECTED_DURATION_DAYS,
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_TEMPLATE,
    DOC_SEARCH,
    DOCUSIGN,
    EXCEPTION_RESOLVED,
    FINISHED_STEP_STATUSES,
    PRE_BOARDING,
    STEP_COMPLETED,
    STEP_IN_PROGRESS,
    STEP_SKIPPED,
    TERMINAL_WORKFLOW_STATUSES,
    WORKFLOW_CANCELLED,
    WORKFLOW_IN_PROGRESS,
)
from .dependencies import unmet_dependencies
from .employees import EmployeeDirectory
from .errors import DependencyNotMet, InvalidTransition, NotFound, PersistenceError
from .integrations.trigger import IntegrationTrigger
from .models import (
    ExceptionRecord,
    IntegrationRecord,
    Step,
    Workflow,
    WorkflowDetails,
    utcnow,
)
from .persistence import WorkflowRepository
from .progress import WorkflowProgress, WorkflowStats, compute_progress, compute_stats
from .stages import StageEngine
from .templates import expand_template, list_templates, resolve_template_name

logger = logging.getLogger(__name__)


class OnboardingOrchestrator:
    """Owns the workflow, step and exception lifecycles.

    Every read-then-write sequence on a workflow runs under
    ``repository.workflow_lock`` so that concurrent step updates cannot both
    observe a stage as unfinished, or both advance it.
    """

    def __init__(
        self,
        repository: WorkflowRepository,
        employees: EmployeeDirectory,
        adapters: Mapping[str, Any],
        timeout: Optional[float] = None,
        expected_duration_days: int = DEFAULT_EXPECTED_DURATION_DAYS,
        default_template: str = DEFAULT_TEMPLATE,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._employees = employees
        self._expected_duration = timedelta(days=expected_duration_days)
        self._default_template = default_template
        self._clock = clock or utcnow
        self._stages = StageEngine(repository, clock=self._clock)
        self._trigger = IntegrationTrigger(
            repository, employees, adapters, timeout=timeout, clock=self._clock
        )

    # ------------------------------------------------------------------
    # Workflow lifecycle
    async def initiate_workflow(
        self,
        employee_id: str,
        template_name: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Workflow:
        """Start onboarding for an employee.

        Args:
            employee_id: Employee being onboarded.
            template_name: Template to expand. Unknown names fall back to the
                generic template.
            created_by: Actor recorded on the workflow.

        Returns:
            The persisted workflow, already ``in_progress``.
        """
        employee = await self._employees.get_by_id(employee_id)
        if employee is None:
            raise NotFound(f"Employee {employee_id} not found", entity_id=employee_id)

        template = resolve_template_name(template_name or self._default_template)
        now = self._clock()
        workflow = Workflow(
            employee_id=employee.id,
            template_id=template,
            status=WORKFLOW_IN_PROGRESS,
            current_stage=PRE_BOARDING,
            overall_progress=0,
            start_date=now,
            expected_completion_date=now + self._expected_duration,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        steps = expand_template(template, workflow.id, now)

        await self._repository.create_workflow(workflow)
        try:
            await self._repository.create_steps(steps)
        except PersistenceError:
            logger.warning(
                f"Step creation failed for workflow_id={workflow.id}; removing workflow"
            )
            await self._repository.delete_workflow(workflow.id)
            raise

        logger.info(
            f"Initiated {template} workflow {workflow.id} for employee {employee.id} "
            f"with {len(steps)} steps"
        )
        return workflow

    async def get_workflow(self, workflow_id: str) -> WorkflowDetails:
        workflow = await self._require_workflow(workflow_id)
        return WorkflowDetails(
            workflow=workflow,
            steps=await self._repository.list_steps(workflow_id),
            exceptions=await self._repository.list_exceptions(workflow_id=workflow_id),
            documents=await self._repository.list_documents(workflow_id),
            integrations=await self._repository.list_integrations(workflow_id=workflow_id),
        )

    async def list_workflows(
        self, status: Optional[str] = None, employee_id: Optional[str] = None
    ) -> List[Workflow]:
        return await self._repository.list_workflows(status=status, employee_id=employee_id)

    async def cancel_workflow(self, workflow_id: str) -> Workflow:
        """Cancel a workflow. Steps are left as they are."""
        async with self._repository.workflow_lock(workflow_id):
            workflow = await self._require_workflow(workflow_id)
            if workflow.status in TERMINAL_WORKFLOW_STATUSES:
                raise InvalidTransition(
                    f"Workflow {workflow_id} is already {workflow.status}",
                    entity_id=workflow_id,
                )
            workflow.status = WORKFLOW_CANCELLED
            workflow.updated_at = self._clock()
            await self._repository.update_workflow(workflow)
        logger.info(f"Cancelled workflow {workflow_id}")
        return workflow

    async def advance_stage(self, workflow_id: str) -> Workflow:
        """Move a workflow to its next stage regardless of step state."""
        async with self._repository.workflow_lock(workflow_id):
            workflow = await self._require_workflow(workflow_id)
            return await self._stages.advance(workflow)

    # ------------------------------------------------------------------
    # Step lifecycle
    async def start_step(self, step_id: str, trigger: bool = False) -> Step:
        """Mark a step in progress once its dependencies are finished.

        With ``trigger`` set, an integration step also fires its configured
        integration after it has been started. A failing integration raises
        :class:`IntegrationFailure` and leaves the step in progress.
        """
        step = await self._require_step(step_id)
        async with self._repository.workflow_lock(step.workflow_id):
            step, _ = await self._load_mutable_step(step_id)
            if step.status in FINISHED_STEP_STATUSES or step.status == STEP_IN_PROGRESS:
                raise InvalidTransition(
                    f"Step {step_id} is already {step.status}", entity_id=step_id
                )

            dependency_steps = {}
            for dep_id in step.dependencies:
                dep = await self._repository.get_step(dep_id)
                if dep is not None:
                    dependency_steps[dep_id] = dep
            unmet = unmet_dependencies(step, dependency_steps)
            if unmet:
                raise DependencyNotMet(step_id, unmet)

            now = self._clock()
            step.status = STEP_IN_PROGRESS
            step.started_at = now
            step.updated_at = now
            await self._repository.update_step(step)
        logger.info(f"Started step {step_id} ({step.name})")

        if trigger and step.step_type == "integration":
            await self._trigger.trigger_step(step.id)
        return step

    async def complete_step(self, step_id: str, completed_by: Optional[str] = None) -> Step:
        """Mark a step completed and run the stage check."""
        step = await self._require_step(step_id)
        async with self._repository.workflow_lock(step.workflow_id):
            step, workflow = await self._load_finishable_step(step_id)
            now = self._clock()
            step.status = STEP_COMPLETED
            step.completed_at = now
            step.completed_by = completed_by
            step.updated_at = now
            await self._repository.update_step(step)
            logger.info(f"Completed step {step_id} ({step.name})")
            await self._settle(workflow)
        return step

    async def skip_step(self, step_id: str, user_id: str, reason: str) -> Step:
        """Skip a step. Skipped steps satisfy dependencies and stages."""
        step = await self._require_step(step_id)
        async with self._repository.workflow_lock(step.workflow_id):
            step, workflow = await self._load_finishable_step(step_id)
            step.status = STEP_SKIPPED
            step.skipped_by = user_id
            step.skip_reason = reason
            step.updated_at = self._clock()
            await self._repository.update_step(step)
            logger.info(f"Skipped step {step_id} ({step.name}): {reason}")
            await self._settle(workflow)
        return step

    # ------------------------------------------------------------------
    # Exceptions
    async def raise_exception(
        self,
        workflow_id: str,
        exception_type: str,
        title: str,
        description: Optional[str] = None,
        severity: str = "medium",
        step_id: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> ExceptionRecord:
        await self._require_workflow(workflow_id)
        now = self._clock()
        record = ExceptionRecord(
            workflow_id=workflow_id,
            step_id=step_id,
            exception_type=exception_type,
            severity=severity,
            title=title,
            description=description,
            assigned_to=assigned_to,
            created_at=now,
            updated_at=now,
        )
        await self._repository.create_exception(record)
        logger.info(f"Raised {exception_type} exception {record.id} on workflow {workflow_id}")
        return record

    async def resolve_exception(
        self, exception_id: str, resolved_by: str, notes: Optional[str] = None
    ) -> ExceptionRecord:
        """Resolve an exception.

        Resolving an exception that is already resolved returns it unchanged,
        keeping the first resolver's metadata.
        """
        record = await self._require_exception(exception_id)
        async with self._repository.workflow_lock(record.workflow_id):
            record = await self._require_exception(exception_id)
            if record.resolution_status == EXCEPTION_RESOLVED:
                logger.debug(f"Exception {exception_id} already resolved by {record.resolved_by}")
                return record
            now = self._clock()
            record.resolution_status = EXCEPTION_RESOLVED
            record.resolved_by = resolved_by
            record.resolution_notes = notes
            record.resolved_at = now
            record.updated_at = now
            await self._repository.update_exception(record)
        logger.info(f"Exception {exception_id} resolved by {resolved_by}")
        return record

    async def list_exceptions(
        self, workflow_id: Optional[str] = None, status: Optional[str] = None
    ) -> List[ExceptionRecord]:
        return await self._repository.list_exceptions(workflow_id=workflow_id, status=status)

    # ------------------------------------------------------------------
    # Reporting
    async def check_workflow_progress(self, workflow_id: str) -> WorkflowProgress:
        workflow = await self._require_workflow(workflow_id)
        steps = await self._repository.list_steps(workflow_id)
        exceptions = await self._repository.list_exceptions(workflow_id=workflow_id)
        return compute_progress(workflow, steps, exceptions, self._clock())

    async def get_stats(self) -> WorkflowStats:
        workflows = await self._repository.list_workflows()
        return compute_stats(workflows, len(list_templates()), self._clock())

    # ------------------------------------------------------------------
    # Integrations
    async def trigger_docusign(
        self,
        step_id: str,
        document_type: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> IntegrationRecord:
        return await self._trigger.trigger(
            step_id, DOCUSIGN, {"document_type": document_type, "metadata": metadata or {}}
        )

    async def trigger_background_check(
        self, step_id: str, check_types: Optional[List[str]] = None
    ) -> IntegrationRecord:
        payload: Dict[str, Any] = {}
        if check_types:
            payload["check_types"] = list(check_types)
        return await self._trigger.trigger(step_id, BACKGROUND_CHECK, payload)

    async def trigger_doc_search(
        self,
        step_id: str,
        query: str = "",
        document_type: str = "",
        file_type: str = "",
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> IntegrationRecord:
        return await self._trigger.trigger(
            step_id,
            DOC_SEARCH,
            {
                "query": query,
                "document_type": document_type,
                "file_type": file_type,
                "limit": limit,
            },
        )

    async def trigger_step_integration(self, step_id: str) -> IntegrationRecord:
        return await self._trigger.trigger_step(step_id)

    async def retry_integration(self, integration_id: str) -> IntegrationRecord:
        return await self._trigger.retry(integration_id)

    async def list_retryable_integrations(self) -> List[IntegrationRecord]:
        """Failed integrations that still have retries left.

        Meant for an external scheduled job that calls
        :meth:`retry_integration` on each.
        """
        return await self._trigger.list_retryable()

    # ------------------------------------------------------------------
    # Helpers
    async def _require_workflow(self, workflow_id: str) -> Workflow:
        workflow = await self._repository.get_workflow(workflow_id)
        if workflow is None:
            raise NotFound(f"Workflow {workflow_id} not found", entity_id=workflow_id)
        return workflow

    async def _require_step(self, step_id: str) -> Step:
        step = await self._repository.get_step(step_id)
        if step is None:
            raise NotFound(f"Step {step_id} not found", entity_id=step_id)
        return step

    async def _require_exception(self, exception_id: str) -> ExceptionRecord:
        record = await self._repository.get_exception(exception_id)
        if record is None:
            raise NotFound(f"Exception {exception_id} not found", entity_id=exception_id)
        return record

    async def _load_mutable_step(self, step_id: str) -> Tuple[Step, Workflow]:
        step = await self._require_step(step_id)
        workflow = await self._require_workflow(step.workflow_id)
        if workflow.status in TERMINAL_WORKFLOW_STATUSES:
            raise InvalidTransition(
                f"Workflow {workflow.id} is {workflow.status}; its steps cannot change",
                entity_id=workflow.id,
            )
        return step, workflow

    async def _load_finishable_step(self, step_id: str) -> Tuple[Step, Workflow]:
        step, workflow = await self._load_mutable_step(step_id)
        if step.status in FINISHED_STEP_STATUSES:
            raise InvalidTransition(f"Step {step_id} is already {step.status}", entity_id=step_id)
        return step, workflow

    async def _settle(self, workflow: Workflow) -> None:
        """Advance the stage if it is finished, otherwise release unblocked steps."""
        stage = workflow.current_stage
        workflow = await self._stages.maybe_advance(workflow)
        if workflow.current_stage == stage and workflow.status == WORKFLOW_IN_PROGRESS:
            steps = await self._repository.list_steps(workflow.id)
            await self._stages.release_blocked_steps(workflow, steps)
