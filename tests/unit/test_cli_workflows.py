import asyncio

import pytest
from typer.testing import CliRunner

import onboardflow.persistence as persistence
from onboardflow.cli import app
from onboardflow.models import ExceptionRecord
from onboardflow.persistence import InMemoryWorkflowRepository

EMPLOYEES = """
- id: emp-1
  first_name: Ada
  last_name: Lovelace
  email: ada@example.com
"""


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    employees_path = tmp_path / "employees.yaml"
    employees_path.write_text(EMPLOYEES)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"employees_file: {employees_path}\n")
    monkeypatch.setenv("ONBOARDFLOW_CONFIG", str(config_path))
    monkeypatch.delenv("ONBOARDFLOW_INTEGRATIONS_BACKEND", raising=False)
    return tmp_path


def _setup_repo(monkeypatch) -> InMemoryWorkflowRepository:
    repo = InMemoryWorkflowRepository()
    monkeypatch.setattr(persistence, "_repository_instance", repo)
    return repo


def _initiate(runner, template="generic") -> str:
    result = runner.invoke(app, ["workflow", "initiate", "emp-1", "--template", template])
    assert result.exit_code == 0, result.output
    return result.output.split("Workflow initiated: ")[1].split()[0]


def test_template_list():
    runner = CliRunner()
    result = runner.invoke(app, ["template", "list"])
    assert result.exit_code == 0
    assert "generic\t4 steps" in result.output
    assert "software-engineer" in result.output


def test_initiate_list_and_show(cli_env, monkeypatch):
    repo = _setup_repo(monkeypatch)
    runner = CliRunner()

    workflow_id = _initiate(runner)

    result = runner.invoke(app, ["workflow", "list"])
    assert result.exit_code == 0, result.output
    assert workflow_id in result.output
    assert "in_progress" in result.output

    result = runner.invoke(app, ["workflow", "show", workflow_id])
    assert result.exit_code == 0, result.output
    assert "Send Offer Letter: pending" in result.output
    assert "Office Tour: blocked" in result.output
    assert asyncio.run(repo.get_workflow(workflow_id)).template_id == "generic"


def test_show_missing_workflow(cli_env, monkeypatch):
    _setup_repo(monkeypatch)
    runner = CliRunner()

    result = runner.invoke(app, ["workflow", "show", "missing-id"])

    assert result.exit_code == 1
    assert "Workflow missing-id not found" in result.output


def test_initiate_unknown_employee(cli_env, monkeypatch):
    _setup_repo(monkeypatch)
    result = CliRunner().invoke(app, ["workflow", "initiate", "emp-404"])
    assert result.exit_code == 1
    assert "Employee emp-404 not found" in result.output


def test_step_commands_drive_stage_progress(cli_env, monkeypatch):
    repo = _setup_repo(monkeypatch)
    runner = CliRunner()
    workflow_id = _initiate(runner)
    steps = asyncio.run(repo.list_steps(workflow_id))

    blocked = runner.invoke(app, ["step", "start", steps[2].id])
    assert blocked.exit_code == 1
    assert "unmet dependencies" in blocked.output

    result = runner.invoke(app, ["step", "complete", steps[0].id, "--by", "hr-1"])
    assert result.exit_code == 0, result.output
    result = runner.invoke(
        app, ["step", "skip", steps[1].id, "--by", "hr-1", "--reason", "signed on paper"]
    )
    assert result.exit_code == 0, result.output
    assert "skipped" in result.output

    result = runner.invoke(app, ["workflow", "progress", workflow_id])
    assert result.exit_code == 0, result.output
    assert "(day-1)" in result.output
    assert "Steps: 1/4 completed (25%), 1 skipped, 0 blocked" in result.output
    assert "On track: yes" in result.output

    result = runner.invoke(app, ["step", "start", steps[2].id])
    assert result.exit_code == 0, result.output
    assert "in-progress" in result.output


def test_trigger_and_exceptions(cli_env, monkeypatch):
    repo = _setup_repo(monkeypatch)
    runner = CliRunner()
    workflow_id = _initiate(runner)
    steps = asyncio.run(repo.list_steps(workflow_id))

    result = runner.invoke(app, ["step", "trigger", steps[0].id])
    assert result.exit_code == 0, result.output
    assert "completed" in result.output
    assert "External ID: mock-env-" in result.output

    result = runner.invoke(app, ["integration", "retryable"])
    assert "No retryable integrations" in result.output

    result = runner.invoke(app, ["exception", "list"])
    assert "No exceptions found" in result.output


def test_resolve_exception(cli_env, monkeypatch):
    repo = _setup_repo(monkeypatch)
    runner = CliRunner()
    workflow_id = _initiate(runner)
    record = ExceptionRecord(workflow_id=workflow_id, exception_type="manual_review", title="Visa")
    asyncio.run(repo.create_exception(record))

    result = runner.invoke(app, ["exception", "list", "--status", "open"])
    assert record.id in result.output

    result = runner.invoke(app, ["exception", "resolve", record.id, "--by", "hr-1", "--notes", "ok"])
    assert result.exit_code == 0, result.output
    assert "resolved by hr-1" in result.output


def test_cancel_advance_and_stats(cli_env, monkeypatch):
    _setup_repo(monkeypatch)
    runner = CliRunner()
    first = _initiate(runner)
    second = _initiate(runner, "manager")

    result = runner.invoke(app, ["workflow", "advance", first])
    assert result.exit_code == 0, result.output
    assert "day-1 (25%)" in result.output

    result = runner.invoke(app, ["workflow", "cancel", second])
    assert result.exit_code == 0, result.output
    assert "cancelled" in result.output

    again = runner.invoke(app, ["workflow", "cancel", second])
    assert again.exit_code == 1
    assert "already cancelled" in again.output

    result = runner.invoke(app, ["workflow", "stats"])
    assert "active_workflows\t1" in result.output


def test_config_option_with_sqlite(tmp_path, monkeypatch):
    monkeypatch.setattr(persistence, "_repository_instance", None)
    monkeypatch.delenv("ONBOARDFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    employees_path = tmp_path / "employees.yaml"
    employees_path.write_text(EMPLOYEES)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"database_url: sqlite://{tmp_path / 'onboarding.db'}\nemployees_file: {employees_path}\n"
    )
    runner = CliRunner()

    result = runner.invoke(
        app, ["--config", str(config_path), "workflow", "initiate", "emp-1", "--template", "manager"]
    )
    assert result.exit_code == 0, result.output
    workflow_id = result.output.split("Workflow initiated: ")[1].split()[0]

    result = runner.invoke(app, ["--config", str(config_path), "workflow", "list"])
    assert workflow_id in result.output
