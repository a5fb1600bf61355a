"""Step dependency resolution.

Dependencies are declared once, when a template is expanded into steps, and are
not editable afterwards. Cycles are therefore a template-authoring bug and are
not detected here.
"""

from __future__ import annotations

from typing import Mapping

from .constants import FINISHED_STEP_STATUSES
from .models import Step


def unmet_dependencies(step: Step, dependency_steps: Mapping[str, Step]) -> list[str]:
    """Return the ids of dependencies that are not completed or skipped.

    A dependency missing from ``dependency_steps`` counts as unmet.
    """
    unmet = []
    for dep_id in step.dependencies:
        dep = dependency_steps.get(dep_id)
        if dep is None or dep.status not in FINISHED_STEP_STATUSES:
            unmet.append(dep_id)
    return unmet


def is_eligible(step: Step, dependency_steps: Mapping[str, Step]) -> bool:
    """Return ``True`` when ``step`` may transition to in-progress."""
    return not unmet_dependencies(step, dependency_steps)
