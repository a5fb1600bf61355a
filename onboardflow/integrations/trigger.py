"""Integration trigger subsystem.

Every outbound call is recorded as an :class:`IntegrationRecord`. Failures are
never retried inline: the record is marked ``failed``, an
``integration_failure`` exception is raised on the workflow, and the caller
gets :class:`IntegrationFailure`. Operators retry failed records explicitly
through :meth:`IntegrationTrigger.retry`.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

from ..constants import (
    BACKGROUND_CHECK,
    DEFAULT_SEARCH_LIMIT,
    DOC_SEARCH,
    DOCUSIGN,
    INTEGRATION_COMPLETED,
    INTEGRATION_FAILED,
    INTEGRATION_FAILURE,
    TERMINAL_WORKFLOW_STATUSES,
)
from ..employees import EmployeeDirectory
from ..errors import IntegrationFailure, InvalidTransition, NotFound
from ..models import (
    Employee,
    ExceptionRecord,
    IntegrationRecord,
    Step,
    Workflow,
    WorkflowDocument,
    utcnow,
)
from ..persistence import WorkflowRepository
from .base import BackgroundCheckRequest, DocumentSearchRequest, EnvelopeRequest

logger = logging.getLogger(__name__)

DEFAULT_CHECK_TYPES = ["criminal", "employment"]


class IntegrationTrigger:
    """Invokes integration adapters on behalf of workflow steps."""

    def __init__(
        self,
        repository: WorkflowRepository,
        employees: EmployeeDirectory,
        adapters: Mapping[str, Any],
        timeout: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._employees = employees
        self._adapters = adapters
        self._timeout = timeout
        self._clock = clock or utcnow

    async def trigger(
        self,
        step_id: str,
        integration_type: str,
        payload: Optional[Dict[str, Any]] = None,
        retry_count: int = 0,
    ) -> IntegrationRecord:
        """Call the ``integration_type`` adapter for ``step_id``.

        Returns the completed record, or raises :class:`IntegrationFailure`
        after recording the failure. The step's own status is not changed.
        """
        payload = dict(payload or {})
        step = await self._repository.get_step(step_id)
        if step is None:
            raise NotFound(f"Step {step_id} not found", entity_id=step_id)
        workflow = await self._repository.get_workflow(step.workflow_id)
        if workflow is None:
            raise NotFound(f"Workflow {step.workflow_id} not found", entity_id=step.workflow_id)
        if workflow.status in TERMINAL_WORKFLOW_STATUSES:
            raise InvalidTransition(
                f"Workflow {workflow.id} is {workflow.status}; integrations cannot run",
                entity_id=workflow.id,
            )
        adapter = self._adapters.get(integration_type)
        if adapter is None:
            raise NotFound(
                f"No adapter configured for {integration_type}", entity_id=step_id
            )
        request = await self._build_request(integration_type, workflow, payload)

        now = self._clock()
        record = IntegrationRecord(
            workflow_id=workflow.id,
            step_id=step.id,
            integration_type=integration_type,
            request_payload=payload,
            retry_count=retry_count,
            last_attempt_at=now,
            created_at=now,
            updated_at=now,
        )
        await self._repository.create_integration(record)
        logger.info(
            f"Triggering {integration_type} for step_id={step.id} workflow_id={workflow.id}"
        )

        try:
            response = await asyncio.wait_for(
                self._invoke(adapter, integration_type, request), self._timeout
            )
        except asyncio.TimeoutError as exc:
            await self._record_failure(
                record, step, f"{integration_type} request timed out after {self._timeout}s"
            )
            raise IntegrationFailure(record) from exc
        except asyncio.CancelledError:
            # the caller's deadline fired; the record must not stay pending
            await asyncio.shield(
                self._record_failure(
                    record, step, f"{integration_type} request cancelled before completion"
                )
            )
            raise
        except Exception as exc:
            await self._record_failure(record, step, str(exc) or type(exc).__name__)
            raise IntegrationFailure(record) from exc

        record.status = INTEGRATION_COMPLETED
        record.response_payload = response.model_dump(mode="json")
        record.external_id = getattr(response, "envelope_id", None) or getattr(
            response, "check_id", None
        )
        record.updated_at = self._clock()
        await self._repository.update_integration(record)

        if integration_type == DOC_SEARCH:
            await self._store_documents(step, response)
        logger.info(f"{integration_type} integration {record.id} completed")
        return record

    async def trigger_step(self, step_id: str) -> IntegrationRecord:
        """Fire the integration configured on an integration step."""
        step = await self._repository.get_step(step_id)
        if step is None:
            raise NotFound(f"Step {step_id} not found", entity_id=step_id)
        if step.integration_type is None:
            raise InvalidTransition(
                f"Step {step_id} has no configured integration", entity_id=step_id
            )
        return await self.trigger(step.id, step.integration_type, step.integration_config)

    async def retry(self, integration_id: str) -> IntegrationRecord:
        """Re-run a failed integration with its original request payload.

        The retry is recorded as a new record whose ``retry_count`` is one
        higher than the failed one.
        """
        record = await self._repository.get_integration(integration_id)
        if record is None:
            raise NotFound(f"Integration {integration_id} not found", entity_id=integration_id)
        if record.status != INTEGRATION_FAILED:
            raise InvalidTransition(
                f"Integration {integration_id} is {record.status}; only failed integrations can be retried",
                entity_id=integration_id,
            )
        if record.retry_count >= record.max_retries:
            raise InvalidTransition(
                f"Integration {integration_id} exhausted its {record.max_retries} retries",
                entity_id=integration_id,
            )
        return await self.trigger(
            record.step_id,
            record.integration_type,
            record.request_payload,
            retry_count=record.retry_count + 1,
        )

    async def list_retryable(self) -> list[IntegrationRecord]:
        failed = await self._repository.list_integrations(status=INTEGRATION_FAILED)
        return [r for r in failed if r.retry_count < r.max_retries]

    # ------------------------------------------------------------------
    async def _employee(self, workflow: Workflow) -> Employee:
        employee = await self._employees.get_by_id(workflow.employee_id)
        if employee is None:
            raise NotFound(
                f"Employee {workflow.employee_id} not found", entity_id=workflow.employee_id
            )
        return employee

    async def _build_request(
        self, integration_type: str, workflow: Workflow, payload: Dict[str, Any]
    ):
        if integration_type == DOCUSIGN:
            employee = await self._employee(workflow)
            return EnvelopeRequest(
                document_type=payload.get("document_type", "general"),
                signer_email=employee.email,
                signer_name=employee.full_name,
                employee_id=employee.id,
                metadata=payload.get("metadata", {}),
            )
        if integration_type == BACKGROUND_CHECK:
            employee = await self._employee(workflow)
            return BackgroundCheckRequest(
                first_name=employee.first_name,
                last_name=employee.last_name,
                email=employee.email,
                employee_id=employee.id,
                check_types=payload.get("check_types", DEFAULT_CHECK_TYPES),
                date_of_birth=payload.get("date_of_birth"),
            )
        if integration_type == DOC_SEARCH:
            return DocumentSearchRequest(
                query=payload.get("query", ""),
                document_type=payload.get("document_type", ""),
                file_type=payload.get("file_type", ""),
                limit=payload.get("limit", DEFAULT_SEARCH_LIMIT),
            )
        raise InvalidTransition(f"Unsupported integration type: {integration_type}")

    @staticmethod
    async def _invoke(adapter, integration_type: str, request):
        if integration_type == DOCUSIGN:
            return await adapter.send_envelope(request)
        if integration_type == BACKGROUND_CHECK:
            return await adapter.initiate_check(request)
        return await adapter.search_documents(request)

    async def _record_failure(self, record: IntegrationRecord, step: Step, message: str) -> None:
        now = self._clock()
        await self._repository.create_exception(
            ExceptionRecord(
                workflow_id=record.workflow_id,
                step_id=step.id,
                exception_type=INTEGRATION_FAILURE,
                severity="high",
                title=f"{record.integration_type} integration failed",
                description=message,
                created_at=now,
                updated_at=now,
            )
        )
        record.status = INTEGRATION_FAILED
        record.error_message = message
        record.updated_at = now
        await self._repository.update_integration(record)
        logger.warning(
            f"{record.integration_type} integration {record.id} failed for "
            f"step_id={step.id}: {message}"
        )

    async def _store_documents(self, step: Step, response) -> None:
        for doc in response.documents:
            await self._repository.create_document(
                WorkflowDocument(
                    workflow_id=step.workflow_id,
                    step_id=step.id,
                    name=doc.name,
                    document_type=doc.document_type,
                    storage_key=doc.storage_key,
                    file_type=doc.file_type,
                    file_size=doc.file_size,
                    metadata=dict(doc.metadata),
                    created_at=self._clock(),
                )
            )
        logger.debug(f"Stored {len(response.documents)} documents for step_id={step.id}")
