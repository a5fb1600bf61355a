"""Progress snapshots and dashboard statistics."""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Iterable

from pydantic import BaseModel

from .constants import (
    EXCEPTION_RESOLVED,
    STEP_BLOCKED,
    STEP_COMPLETED,
    STEP_FAILED,
    STEP_IN_PROGRESS,
    STEP_PENDING,
    STEP_SKIPPED,
    WORKFLOW_COMPLETED,
    WORKFLOW_IN_PROGRESS,
    WORKFLOW_NOT_STARTED,
)
from .models import ExceptionRecord, Step, Workflow


class WorkflowProgress(BaseModel):
    """Point-in-time view of a workflow's progress."""

    workflow_id: str
    total_steps: int = 0
    completed_steps: int = 0
    in_progress_steps: int = 0
    pending_steps: int = 0
    blocked_steps: int = 0
    skipped_steps: int = 0
    failed_steps: int = 0
    progress_percentage: int = 0
    overall_progress: int = 0
    current_stage: str
    status: str
    days_elapsed: int = 0
    expected_days: int = 0
    is_on_track: bool = True
    open_exceptions: int = 0


def compute_progress(
    workflow: Workflow,
    steps: Iterable[Step],
    exceptions: Iterable[ExceptionRecord],
    now: datetime,
) -> WorkflowProgress:
    """Compute a progress snapshot from live step and exception state.

    ``progress_percentage`` counts completed steps only; skipped steps do not
    add to it. A workflow is on track while the days elapsed since its start do
    not exceed the expected duration.
    """
    steps = list(steps)
    counts = Counter(step.status for step in steps)
    total = len(steps)
    completed = counts[STEP_COMPLETED]

    days_elapsed = (now - workflow.start_date).days
    expected_days = 0
    is_on_track = True
    if workflow.expected_completion_date is not None:
        expected_days = (workflow.expected_completion_date - workflow.start_date).days
        is_on_track = days_elapsed <= expected_days

    return WorkflowProgress(
        workflow_id=workflow.id,
        total_steps=total,
        completed_steps=completed,
        in_progress_steps=counts[STEP_IN_PROGRESS],
        pending_steps=counts[STEP_PENDING],
        blocked_steps=counts[STEP_BLOCKED],
        skipped_steps=counts[STEP_SKIPPED],
        failed_steps=counts[STEP_FAILED],
        progress_percentage=(completed * 100) // total if total else 0,
        overall_progress=workflow.overall_progress,
        current_stage=workflow.current_stage,
        status=workflow.status,
        days_elapsed=days_elapsed,
        expected_days=expected_days,
        is_on_track=is_on_track,
        open_exceptions=sum(
            1 for exc in exceptions if exc.resolution_status != EXCEPTION_RESOLVED
        ),
    )


class WorkflowStats(BaseModel):
    """Dashboard counters across all workflows."""

    templates_count: int = 0
    active_workflows: int = 0
    not_started_workflows: int = 0
    completed_this_month: int = 0
    avg_completion_days: int = 0


def compute_stats(workflows: Iterable[Workflow], templates_count: int, now: datetime) -> WorkflowStats:
    """Summarise workflows for a dashboard.

    The average completion time only covers workflows completed since the
    start of ``now``'s month, in whole days.
    """
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    stats = WorkflowStats(templates_count=templates_count)
    total_days = 0
    for wf in workflows:
        if wf.status == WORKFLOW_IN_PROGRESS:
            stats.active_workflows += 1
        elif wf.status == WORKFLOW_NOT_STARTED:
            stats.not_started_workflows += 1
        elif wf.status == WORKFLOW_COMPLETED and wf.actual_completion_date is not None:
            if wf.actual_completion_date >= month_start:
                stats.completed_this_month += 1
                total_days += (wf.actual_completion_date - wf.start_date).days
    if stats.completed_this_month:
        stats.avg_completion_days = total_days // stats.completed_this_month
    return stats
