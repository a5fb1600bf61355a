from datetime import datetime, timedelta, timezone

import pytest

from onboardflow.constants import BACKGROUND_CHECK, DOC_SEARCH, DOCUSIGN
from onboardflow.employees import InMemoryEmployeeDirectory
from onboardflow.integrations import (
    MockBackgroundCheckAdapter,
    MockDocumentSearchAdapter,
    MockDocumentSigningAdapter,
)
from onboardflow.models import Employee
from onboardflow.orchestrator import OnboardingOrchestrator
from onboardflow.persistence import InMemoryWorkflowRepository


class FakeClock:
    """Controllable clock for deterministic timestamps."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def repo() -> InMemoryWorkflowRepository:
    return InMemoryWorkflowRepository()


@pytest.fixture
def employee() -> Employee:
    return Employee(id="emp-1", first_name="Ada", last_name="Lovelace", email="ada@example.com")


@pytest.fixture
def employees(employee) -> InMemoryEmployeeDirectory:
    return InMemoryEmployeeDirectory([employee])


@pytest.fixture
def adapters() -> dict:
    return {
        DOCUSIGN: MockDocumentSigningAdapter(),
        BACKGROUND_CHECK: MockBackgroundCheckAdapter(),
        DOC_SEARCH: MockDocumentSearchAdapter(),
    }


@pytest.fixture
def orchestrator(repo, employees, adapters, clock) -> OnboardingOrchestrator:
    return OnboardingOrchestrator(repo, employees, adapters, timeout=1.0, clock=clock)
