"""Error taxonomy for onboarding workflows."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from .models import IntegrationRecord


class OnboardingError(Exception):
    """Base class for errors raised by the onboarding engine."""

    def __init__(self, message: str, entity_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.entity_id = entity_id


class NotFound(OnboardingError):
    """A workflow, step, employee or other reference did not resolve."""


class DependencyNotMet(OnboardingError):
    """A step was started before its prerequisites finished."""

    def __init__(self, step_id: str, unmet: Sequence[str]) -> None:
        super().__init__(
            f"Step {step_id} has unmet dependencies: {', '.join(unmet)}",
            entity_id=step_id,
        )
        self.unmet = list(unmet)


class InvalidTransition(OnboardingError):
    """The requested state change is not allowed from the current state."""


class PersistenceError(OnboardingError):
    """A repository call failed."""


class IntegrationFailure(OnboardingError):
    """An outbound integration call failed or timed out."""

    def __init__(self, record: "IntegrationRecord") -> None:
        super().__init__(
            f"{record.integration_type} integration failed: {record.error_message}",
            entity_id=record.id,
        )
        self.record = record


class AdapterError(Exception):
    """Raised by integration adapters when the provider call fails."""
