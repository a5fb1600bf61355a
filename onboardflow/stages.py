"""Stage advancement for onboarding workflows.

Stages form a fixed linear sequence::

    pre-boarding -> day-1 -> week-1 -> month-1 -> completed

Entering a stage records a fixed progress checkpoint (25, 50, 75, 100).
Advancement is driven by step completion and is never polled.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from .constants import (
    COMPLETED_STAGE,
    FINISHED_STEP_STATUSES,
    STAGE_CHECKPOINTS,
    STAGES,
    STEP_BLOCKED,
    STEP_PENDING,
    WORKFLOW_COMPLETED,
    WORKFLOW_IN_PROGRESS,
)
from .dependencies import is_eligible
from .errors import InvalidTransition
from .models import Step, Workflow, utcnow
from .persistence import WorkflowRepository

logger = logging.getLogger(__name__)


def next_stage(stage: str) -> str:
    """Return the stage that follows ``stage``."""
    if stage == COMPLETED_STAGE:
        raise InvalidTransition("Cannot advance past the completed stage")
    if stage not in STAGES:
        raise InvalidTransition(f"Unknown stage: {stage}")
    index = STAGES.index(stage)
    return STAGES[index + 1] if index + 1 < len(STAGES) else COMPLETED_STAGE


def stage_is_finished(stage: str, steps: Iterable[Step]) -> bool:
    """Return ``True`` when every step of ``stage`` is completed or skipped.

    A stage without steps is vacuously finished.
    """
    return all(
        step.status in FINISHED_STEP_STATUSES for step in steps if step.stage == stage
    )


class StageEngine:
    """Moves workflows through their stages.

    Callers must hold ``repository.workflow_lock(workflow.id)`` around
    :meth:`maybe_advance` and :meth:`advance` so that the read-steps and
    write-stage sequence is not interleaved with another step update.
    """

    def __init__(
        self,
        repository: WorkflowRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._clock = clock or utcnow

    async def maybe_advance(self, workflow: Workflow) -> Workflow:
        """Advance ``workflow`` one stage if its current stage is finished.

        Workflows that are not in progress are left untouched.
        """
        if workflow.status != WORKFLOW_IN_PROGRESS:
            logger.debug(
                f"Skipping stage check for workflow_id={workflow.id} with status {workflow.status}"
            )
            return workflow

        steps = await self._repository.list_steps(workflow.id)
        if not stage_is_finished(workflow.current_stage, steps):
            return workflow
        return await self._advance(workflow, steps)

    async def advance(self, workflow: Workflow) -> Workflow:
        """Advance ``workflow`` one stage regardless of step state."""
        if workflow.status != WORKFLOW_IN_PROGRESS:
            raise InvalidTransition(
                f"Workflow {workflow.id} is {workflow.status} and cannot advance",
                entity_id=workflow.id,
            )
        steps = await self._repository.list_steps(workflow.id)
        return await self._advance(workflow, steps)

    async def _advance(self, workflow: Workflow, steps: list[Step]) -> Workflow:
        previous = workflow.current_stage
        stage = next_stage(previous)
        now = self._clock()

        workflow.current_stage = stage
        # checkpoints only grow along the sequence
        workflow.overall_progress = max(workflow.overall_progress, STAGE_CHECKPOINTS[stage])
        workflow.updated_at = now
        if stage == COMPLETED_STAGE:
            workflow.status = WORKFLOW_COMPLETED
            workflow.actual_completion_date = now
        await self._repository.update_workflow(workflow)
        logger.info(
            f"Workflow {workflow.id} advanced from {previous} to {stage} "
            f"({workflow.overall_progress}%)"
        )

        await self.release_blocked_steps(workflow, steps)
        return workflow

    async def release_blocked_steps(self, workflow: Workflow, steps: list[Step]) -> list[Step]:
        """Mark blocked steps of the current stage ``pending`` once eligible."""
        by_id = {step.id: step for step in steps}
        released = []
        for step in steps:
            if step.status != STEP_BLOCKED or step.stage != workflow.current_stage:
                continue
            if is_eligible(step, by_id):
                step.status = STEP_PENDING
                step.updated_at = self._clock()
                await self._repository.update_step(step)
                released.append(step)
        if released:
            logger.debug(
                f"Released {len(released)} blocked steps for workflow_id={workflow.id}"
            )
        return released
