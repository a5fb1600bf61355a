"""Onboardflow: onboarding workflow engine for HR backends."""

from .errors import (
    DependencyNotMet,
    IntegrationFailure,
    InvalidTransition,
    NotFound,
    OnboardingError,
    PersistenceError,
)
from .models import Employee, ExceptionRecord, IntegrationRecord, Step, Workflow
from .orchestrator import OnboardingOrchestrator
from .integrations import get_adapters
from .persistence import get_repository

__version__ = "0.1.0"
__all__ = [
    "DependencyNotMet",
    "Employee",
    "ExceptionRecord",
    "IntegrationFailure",
    "IntegrationRecord",
    "InvalidTransition",
    "NotFound",
    "OnboardingError",
    "OnboardingOrchestrator",
    "PersistenceError",
    "Step",
    "Workflow",
    "get_adapters",
    "get_repository",
]
