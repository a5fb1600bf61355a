"""Data models for onboarding workflows and their related records."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_MAX_RETRIES,
    EXCEPTION_OPEN,
    INTEGRATION_PENDING,
    PRE_BOARDING,
    STEP_PENDING,
    WORKFLOW_NOT_STARTED,
)

WorkflowStatus = Literal["not_started", "in_progress", "completed", "cancelled"]
Stage = Literal["pre-boarding", "day-1", "week-1", "month-1", "completed"]
StepStatus = Literal["pending", "blocked", "in-progress", "completed", "skipped", "failed"]
StepType = Literal["manual", "integration"]
IntegrationType = Literal["docusign", "background-check", "doc-search"]
IntegrationStatus = Literal["pending", "in-progress", "completed", "failed"]
ResolutionStatus = Literal["open", "in-progress", "resolved"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Employee(BaseModel):
    """The subset of employee data the onboarding engine needs."""

    id: str
    first_name: str
    last_name: str
    email: str
    manager_id: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Workflow(BaseModel):
    """One onboarding instance for one employee."""

    id: str = Field(default_factory=new_id)
    employee_id: str
    template_id: Optional[str] = None
    status: WorkflowStatus = WORKFLOW_NOT_STARTED
    current_stage: Stage = PRE_BOARDING
    overall_progress: int = Field(default=0, ge=0, le=100)
    start_date: datetime = Field(default_factory=utcnow)
    expected_completion_date: Optional[datetime] = None
    actual_completion_date: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Step(BaseModel):
    """A single checklist item within a workflow."""

    id: str = Field(default_factory=new_id)
    workflow_id: str
    order_index: int
    name: str
    description: Optional[str] = None
    step_type: StepType = "manual"
    stage: Stage
    integration_type: Optional[IntegrationType] = None
    integration_config: dict[str, Any] = Field(default_factory=dict)
    status: StepStatus = STEP_PENDING
    dependencies: list[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    skipped_by: Optional[str] = None
    skip_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class IntegrationRecord(BaseModel):
    """Audit and state record of one outbound integration call."""

    id: str = Field(default_factory=new_id)
    workflow_id: str
    step_id: str
    integration_type: IntegrationType
    status: IntegrationStatus = INTEGRATION_PENDING
    request_payload: dict[str, Any] = Field(default_factory=dict)
    response_payload: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    external_id: Optional[str] = None
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    last_attempt_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ExceptionRecord(BaseModel):
    """A durable flag that a workflow needs human attention."""

    id: str = Field(default_factory=new_id)
    workflow_id: str
    step_id: Optional[str] = None
    exception_type: str
    severity: str = "medium"
    title: str
    description: Optional[str] = None
    resolution_status: ResolutionStatus = EXCEPTION_OPEN
    assigned_to: Optional[str] = None
    resolved_by: Optional[str] = None
    resolution_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class WorkflowDocument(BaseModel):
    """A document attached to a workflow, usually found by document search."""

    id: str = Field(default_factory=new_id)
    workflow_id: str
    step_id: Optional[str] = None
    name: str
    document_type: str
    storage_key: Optional[str] = None
    file_type: str
    file_size: Optional[int] = None
    status: str = "available"
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class WorkflowDetails(BaseModel):
    """A workflow together with everything attached to it."""

    workflow: Workflow
    steps: list[Step] = Field(default_factory=list)
    exceptions: list[ExceptionRecord] = Field(default_factory=list)
    documents: list[WorkflowDocument] = Field(default_factory=list)
    integrations: list[IntegrationRecord] = Field(default_factory=list)
