"""Command line interface for onboarding workflows."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Coroutine, Optional, TypeVar

import typer

from onboardflow.config import OnboardflowConfig, load_config
from onboardflow.employees import InMemoryEmployeeDirectory
from onboardflow.errors import IntegrationFailure, NotFound, OnboardingError
from onboardflow.integrations import get_adapters
from onboardflow.orchestrator import OnboardingOrchestrator
from onboardflow.persistence import get_repository
from onboardflow.templates import TEMPLATES, list_templates

T = TypeVar("T")

app = typer.Typer(help="CLI for onboarding workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for managing workflows")
step_app = typer.Typer(help="Commands for moving steps through their lifecycle")
integration_app = typer.Typer(help="Commands for integration records")
exception_app = typer.Typer(help="Commands for workflow exceptions")
template_app = typer.Typer(help="Commands for onboarding templates")

app.add_typer(workflow_app, name="workflow")
app.add_typer(step_app, name="step")
app.add_typer(integration_app, name="integration")
app.add_typer(exception_app, name="exception")
app.add_typer(template_app, name="template")


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, help="Path to a YAML config file"),
    log_level: str = typer.Option("WARNING", help="Logging level"),
) -> None:
    """Onboardflow CLI entry point."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"config_path": str(config) if config else None}


def _load(ctx: typer.Context) -> tuple[OnboardflowConfig, bool]:
    config_path = (ctx.obj or {}).get("config_path")
    return load_config(config_path), config_path is not None


def _orchestrator(ctx: typer.Context) -> OnboardingOrchestrator:
    config, explicit = _load(ctx)
    repository = get_repository(config=config) if explicit else get_repository()
    employees = (
        InMemoryEmployeeDirectory.from_yaml(config.employees_file)
        if config.employees_file
        else InMemoryEmployeeDirectory()
    )
    return OnboardingOrchestrator(
        repository,
        employees,
        get_adapters(config=config),
        timeout=config.integrations.timeout_seconds,
        expected_duration_days=config.workflow.expected_duration_days,
        default_template=config.workflow.default_template,
    )


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run ``coro`` and turn engine errors into a non-zero exit."""
    try:
        return asyncio.run(coro)
    except NotFound as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1)
    except IntegrationFailure as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        typer.echo(f"Integration record: {exc.record.id}")
        raise typer.Exit(code=1)
    except OnboardingError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


# ----------------------------------------------------------------------
# Workflows
@workflow_app.command("list")
def workflow_list(
    ctx: typer.Context,
    status: Optional[str] = typer.Option(None, help="Only show workflows with this status"),
    employee: Optional[str] = typer.Option(None, help="Only show workflows for this employee"),
) -> None:
    """
    List workflows, newest first.

    Example:
        onboardflow workflow list --status in_progress
        # Output: 1f0c...    in_progress    day-1    25%    emp-1
    """
    orchestrator = _orchestrator(ctx)
    workflows = _run(orchestrator.list_workflows(status=status, employee_id=employee))
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        typer.echo(
            f"{wf.id}\t{wf.status}\t{wf.current_stage}\t{wf.overall_progress}%\t{wf.employee_id}"
        )


@workflow_app.command("show")
def workflow_show(ctx: typer.Context, workflow_id: str) -> None:
    """Show a workflow with its steps, exceptions and documents."""
    orchestrator = _orchestrator(ctx)
    details = _run(orchestrator.get_workflow(workflow_id))
    wf = details.workflow
    typer.echo(f"Workflow {wf.id}: {wf.status}")
    typer.echo(f"Employee: {wf.employee_id}  Template: {wf.template_id}")
    typer.echo(f"Stage: {wf.current_stage} ({wf.overall_progress}%)")
    for step in details.steps:
        line = f"- [{step.stage}] {step.name}: {step.status} ({step.id})"
        if step.skip_reason:
            line += f" skipped by {step.skipped_by}: {step.skip_reason}"
        typer.echo(line)
    for exc in details.exceptions:
        typer.echo(f"! {exc.title} [{exc.severity}, {exc.resolution_status}] ({exc.id})")
    for doc in details.documents:
        typer.echo(f"* {doc.name} ({doc.document_type}, {doc.storage_key})")


@workflow_app.command("initiate")
def workflow_initiate(
    ctx: typer.Context,
    employee_id: str,
    template: Optional[str] = typer.Option(None, help="Template name"),
    created_by: Optional[str] = typer.Option(None, help="Actor starting the workflow"),
) -> None:
    """
    Start onboarding for an employee.

    Example:
        onboardflow workflow initiate emp-1 --template software-engineer
    """
    orchestrator = _orchestrator(ctx)
    wf = _run(orchestrator.initiate_workflow(employee_id, template, created_by))
    typer.echo(f"Workflow initiated: {wf.id}")
    typer.echo(f"Template: {wf.template_id}")


@workflow_app.command("progress")
def workflow_progress(ctx: typer.Context, workflow_id: str) -> None:
    """Show the live progress snapshot of a workflow."""
    orchestrator = _orchestrator(ctx)
    progress = _run(orchestrator.check_workflow_progress(workflow_id))
    typer.echo(f"Workflow {progress.workflow_id}: {progress.status} ({progress.current_stage})")
    typer.echo(
        f"Steps: {progress.completed_steps}/{progress.total_steps} completed "
        f"({progress.progress_percentage}%), {progress.skipped_steps} skipped, "
        f"{progress.blocked_steps} blocked"
    )
    typer.echo(f"Days: {progress.days_elapsed}/{progress.expected_days}")
    typer.echo(f"On track: {'yes' if progress.is_on_track else 'no'}")
    typer.echo(f"Open exceptions: {progress.open_exceptions}")


@workflow_app.command("cancel")
def workflow_cancel(ctx: typer.Context, workflow_id: str) -> None:
    """Cancel a workflow."""
    orchestrator = _orchestrator(ctx)
    wf = _run(orchestrator.cancel_workflow(workflow_id))
    typer.echo(f"Workflow {wf.id}: {wf.status}")


@workflow_app.command("advance")
def workflow_advance(ctx: typer.Context, workflow_id: str) -> None:
    """Force a workflow into its next stage."""
    orchestrator = _orchestrator(ctx)
    wf = _run(orchestrator.advance_stage(workflow_id))
    typer.echo(f"Workflow {wf.id}: {wf.current_stage} ({wf.overall_progress}%)")


@workflow_app.command("stats")
def workflow_stats(ctx: typer.Context) -> None:
    """Show dashboard counters."""
    orchestrator = _orchestrator(ctx)
    stats = _run(orchestrator.get_stats())
    for key, value in stats.model_dump().items():
        typer.echo(f"{key}\t{value}")


# ----------------------------------------------------------------------
# Steps
@step_app.command("start")
def step_start(
    ctx: typer.Context,
    step_id: str,
    trigger: bool = typer.Option(False, help="Fire the step's integration after starting it"),
) -> None:
    """Start a step once its dependencies are finished."""
    orchestrator = _orchestrator(ctx)
    step = _run(orchestrator.start_step(step_id, trigger=trigger))
    typer.echo(f"Step {step.id}: {step.status}")


@step_app.command("complete")
def step_complete(
    ctx: typer.Context,
    step_id: str,
    by: Optional[str] = typer.Option(None, "--by", help="Actor completing the step"),
) -> None:
    """Complete a step."""
    orchestrator = _orchestrator(ctx)
    step = _run(orchestrator.complete_step(step_id, completed_by=by))
    typer.echo(f"Step {step.id}: {step.status}")


@step_app.command("skip")
def step_skip(
    ctx: typer.Context,
    step_id: str,
    by: str = typer.Option(..., "--by", help="Actor skipping the step"),
    reason: str = typer.Option(..., help="Why the step is skipped"),
) -> None:
    """Skip a step. Skipped steps count as done."""
    orchestrator = _orchestrator(ctx)
    step = _run(orchestrator.skip_step(step_id, by, reason))
    typer.echo(f"Step {step.id}: {step.status}")


@step_app.command("trigger")
def step_trigger(ctx: typer.Context, step_id: str) -> None:
    """Fire the integration configured on a step."""
    orchestrator = _orchestrator(ctx)
    record = _run(orchestrator.trigger_step_integration(step_id))
    typer.echo(f"Integration {record.id}: {record.status}")
    if record.external_id:
        typer.echo(f"External ID: {record.external_id}")


# ----------------------------------------------------------------------
# Integrations
@integration_app.command("retry")
def integration_retry(ctx: typer.Context, integration_id: str) -> None:
    """Retry a failed integration with its original request."""
    orchestrator = _orchestrator(ctx)
    record = _run(orchestrator.retry_integration(integration_id))
    typer.echo(f"Integration {record.id}: {record.status} (retry {record.retry_count})")


@integration_app.command("retryable")
def integration_retryable(ctx: typer.Context) -> None:
    """List failed integrations that still have retries left."""
    orchestrator = _orchestrator(ctx)
    records = _run(orchestrator.list_retryable_integrations())
    if not records:
        typer.echo("No retryable integrations")
        return
    for record in records:
        typer.echo(
            f"{record.id}\t{record.integration_type}\t"
            f"{record.retry_count}/{record.max_retries}\t{record.error_message}"
        )


# ----------------------------------------------------------------------
# Exceptions
@exception_app.command("list")
def exception_list(
    ctx: typer.Context,
    workflow: Optional[str] = typer.Option(None, help="Only show exceptions of this workflow"),
    status: Optional[str] = typer.Option(None, help="Only show exceptions with this status"),
) -> None:
    """List workflow exceptions."""
    orchestrator = _orchestrator(ctx)
    records = _run(orchestrator.list_exceptions(workflow_id=workflow, status=status))
    if not records:
        typer.echo("No exceptions found")
        return
    for record in records:
        typer.echo(
            f"{record.id}\t{record.resolution_status}\t{record.severity}\t{record.title}"
        )


@exception_app.command("resolve")
def exception_resolve(
    ctx: typer.Context,
    exception_id: str,
    by: str = typer.Option(..., "--by", help="Actor resolving the exception"),
    notes: Optional[str] = typer.Option(None, help="Resolution notes"),
) -> None:
    """Resolve an exception."""
    orchestrator = _orchestrator(ctx)
    record = _run(orchestrator.resolve_exception(exception_id, by, notes))
    typer.echo(f"Exception {record.id}: {record.resolution_status} by {record.resolved_by}")


# ----------------------------------------------------------------------
# Templates
@template_app.command("list")
def template_list() -> None:
    """List the available onboarding templates."""
    for name in list_templates():
        typer.echo(f"{name}\t{len(TEMPLATES[name])} steps")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
