import asyncio
from datetime import datetime, timedelta, timezone

import pytest

import onboardflow.persistence as persistence
from onboardflow.config import OnboardflowConfig
from onboardflow.errors import PersistenceError
from onboardflow.models import (
    ExceptionRecord,
    IntegrationRecord,
    Step,
    Workflow,
    WorkflowDocument,
)
from onboardflow.persistence import (
    InMemoryWorkflowRepository,
    SQLiteWorkflowRepository,
    get_repository,
)

T0 = datetime(2025, 3, 3, tzinfo=timezone.utc)


@pytest.fixture(params=["inmemory", "sqlite"])
def repository(request, tmp_path):
    if request.param == "sqlite":
        return SQLiteWorkflowRepository(tmp_path / "onboarding.db")
    return InMemoryWorkflowRepository()


def _steps(workflow_id: str):
    return [
        Step(workflow_id=workflow_id, order_index=2, name="second", stage="day-1", status="blocked"),
        Step(workflow_id=workflow_id, order_index=1, name="first", stage="pre-boarding"),
    ]


@pytest.mark.asyncio
async def test_workflow_crud(repository):
    older = Workflow(employee_id="emp-1", status="in_progress", created_at=T0)
    newer = Workflow(employee_id="emp-2", status="cancelled", created_at=T0 + timedelta(hours=1))
    await repository.create_workflow(older)
    await repository.create_workflow(newer)

    assert [w.id for w in await repository.list_workflows()] == [newer.id, older.id]
    assert [w.id for w in await repository.list_workflows(status="in_progress")] == [older.id]
    assert [w.id for w in await repository.list_workflows(employee_id="emp-2")] == [newer.id]

    older.current_stage = "day-1"
    older.overall_progress = 25
    await repository.update_workflow(older)
    stored = await repository.get_workflow(older.id)
    assert stored == older
    assert await repository.get_workflow("missing") is None


@pytest.mark.asyncio
async def test_steps_are_ordered_and_updatable(repository):
    workflow = Workflow(employee_id="emp-1")
    await repository.create_workflow(workflow)
    await repository.create_steps(_steps(workflow.id))

    steps = await repository.list_steps(workflow.id)
    assert [s.name for s in steps] == ["first", "second"]

    steps[1].status = "pending"
    steps[1].integration_config = {"document_type": "i9"}
    await repository.update_step(steps[1])
    stored = await repository.get_step(steps[1].id)
    assert stored.status == "pending"
    assert stored.integration_config == {"document_type": "i9"}


@pytest.mark.asyncio
async def test_returned_records_are_detached(repository):
    workflow = Workflow(employee_id="emp-1")
    await repository.create_workflow(workflow)

    fetched = await repository.get_workflow(workflow.id)
    fetched.status = "cancelled"

    assert (await repository.get_workflow(workflow.id)).status == "not_started"


@pytest.mark.asyncio
async def test_integrations_exceptions_and_documents(repository):
    workflow = Workflow(employee_id="emp-1")
    await repository.create_workflow(workflow)
    steps = _steps(workflow.id)
    await repository.create_steps(steps)

    ok = IntegrationRecord(
        workflow_id=workflow.id, step_id=steps[0].id, integration_type="docusign", status="completed"
    )
    bad = IntegrationRecord(
        workflow_id=workflow.id,
        step_id=steps[0].id,
        integration_type="background-check",
        status="failed",
        error_message="service unavailable",
    )
    await repository.create_integration(ok)
    await repository.create_integration(bad)
    assert [r.id for r in await repository.list_integrations(workflow_id=workflow.id)] == [ok.id, bad.id]
    assert [r.id for r in await repository.list_integrations(status="failed")] == [bad.id]
    bad.retry_count = 1
    await repository.update_integration(bad)
    assert (await repository.get_integration(bad.id)).retry_count == 1

    exc = ExceptionRecord(workflow_id=workflow.id, exception_type="integration_failure", title="t")
    await repository.create_exception(exc)
    exc.resolution_status = "resolved"
    exc.resolved_by = "hr-1"
    await repository.update_exception(exc)
    assert await repository.list_exceptions(status="open") == []
    assert (await repository.get_exception(exc.id)).resolved_by == "hr-1"

    doc = WorkflowDocument(
        workflow_id=workflow.id,
        step_id=steps[0].id,
        name="Employee Handbook 2025.pdf",
        document_type="handbook",
        file_type="pdf",
        metadata={"version": "2025.1"},
    )
    await repository.create_document(doc)
    assert await repository.list_documents(workflow.id) == [doc]


@pytest.mark.asyncio
async def test_delete_workflow_cascades(repository):
    workflow = Workflow(employee_id="emp-1")
    await repository.create_workflow(workflow)
    steps = _steps(workflow.id)
    await repository.create_steps(steps)
    await repository.create_exception(
        ExceptionRecord(workflow_id=workflow.id, exception_type="manual", title="t")
    )

    await repository.delete_workflow(workflow.id)

    assert await repository.get_workflow(workflow.id) is None
    assert await repository.list_steps(workflow.id) == []
    assert await repository.get_step(steps[0].id) is None
    assert await repository.list_exceptions(workflow_id=workflow.id) == []


@pytest.mark.asyncio
async def test_workflow_lock_serialises_holders(repository):
    order = []

    async def holder(name):
        async with repository.workflow_lock("wf-1"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(holder("a"), holder("b"))

    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


@pytest.mark.asyncio
async def test_workflow_lock_is_dropped_when_released():
    repository = InMemoryWorkflowRepository()
    async with repository.workflow_lock("wf-1"):
        assert "wf-1" in repository._locks

    assert "wf-1" not in repository._locks


@pytest.mark.asyncio
async def test_sqlite_persists_across_instances(tmp_path):
    db_path = tmp_path / "onboarding.db"
    workflow = Workflow(employee_id="emp-1")
    await SQLiteWorkflowRepository(db_path).create_workflow(workflow)

    stored = await SQLiteWorkflowRepository(db_path).get_workflow(workflow.id)

    assert stored == workflow


@pytest.mark.asyncio
async def test_sqlite_step_batch_is_atomic(tmp_path):
    repo = SQLiteWorkflowRepository(tmp_path / "onboarding.db")
    workflow = Workflow(employee_id="emp-1")
    await repo.create_workflow(workflow)
    steps = _steps(workflow.id)
    steps[1].id = steps[0].id

    with pytest.raises(PersistenceError):
        await repo.create_steps(steps)

    assert await repo.list_steps(workflow.id) == []


@pytest.mark.asyncio
async def test_sqlite_rejects_steps_for_unknown_workflow(tmp_path):
    repo = SQLiteWorkflowRepository(tmp_path / "onboarding.db")
    with pytest.raises(PersistenceError):
        await repo.create_steps(_steps("missing"))


def test_get_repository_selects_backend(tmp_path, monkeypatch):
    monkeypatch.setattr(persistence, "_repository_instance", None)

    sqlite_repo = get_repository(f"sqlite://{tmp_path / 'wf.db'}")
    assert isinstance(sqlite_repo, SQLiteWorkflowRepository)
    assert get_repository() is sqlite_repo

    memory_repo = get_repository(config=OnboardflowConfig())
    assert isinstance(memory_repo, InMemoryWorkflowRepository)

    with pytest.raises(ValueError):
        get_repository("mysql://localhost/db")
