from datetime import datetime, timedelta, timezone

from onboardflow.models import ExceptionRecord, Step, Workflow
from onboardflow.progress import compute_progress, compute_stats

START = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)


def _workflow(**kwargs) -> Workflow:
    defaults = dict(
        employee_id="emp-1",
        status="in_progress",
        start_date=START,
        expected_completion_date=START + timedelta(days=30),
    )
    defaults.update(kwargs)
    return Workflow(**defaults)


def _steps(*statuses):
    return [
        Step(workflow_id="wf", order_index=i, name=f"s{i}", stage="pre-boarding", status=s)
        for i, s in enumerate(statuses)
    ]


def test_counts_and_percentage():
    steps = _steps("completed", "completed", "skipped", "pending", "blocked", "in-progress", "failed")

    progress = compute_progress(_workflow(), steps, [], START)

    assert progress.total_steps == 7
    assert progress.completed_steps == 2
    assert progress.skipped_steps == 1
    assert progress.pending_steps == 1
    assert progress.blocked_steps == 1
    assert progress.in_progress_steps == 1
    assert progress.failed_steps == 1
    assert progress.progress_percentage == 28


def test_no_steps_is_zero_percent():
    progress = compute_progress(_workflow(), [], [], START)
    assert progress.progress_percentage == 0


def test_on_track_until_expected_duration_passes():
    workflow = _workflow()

    on_day_30 = compute_progress(workflow, [], [], START + timedelta(days=30, hours=5))
    on_day_31 = compute_progress(workflow, [], [], START + timedelta(days=31))

    assert on_day_30.days_elapsed == 30
    assert on_day_30.expected_days == 30
    assert on_day_30.is_on_track
    assert not on_day_31.is_on_track


def test_open_exceptions_exclude_resolved():
    exceptions = [
        ExceptionRecord(workflow_id="wf", exception_type="x", title="a"),
        ExceptionRecord(workflow_id="wf", exception_type="x", title="b", resolution_status="in-progress"),
        ExceptionRecord(workflow_id="wf", exception_type="x", title="c", resolution_status="resolved"),
    ]
    progress = compute_progress(_workflow(), [], exceptions, START)
    assert progress.open_exceptions == 2


def test_stats_average_only_covers_this_month():
    now = datetime(2025, 3, 20, tzinfo=timezone.utc)
    workflows = [
        _workflow(),
        _workflow(status="not_started"),
        _workflow(status="cancelled"),
        _workflow(
            status="completed",
            start_date=datetime(2025, 2, 1, tzinfo=timezone.utc),
            actual_completion_date=datetime(2025, 3, 5, tzinfo=timezone.utc),
        ),
        _workflow(
            status="completed",
            start_date=datetime(2025, 2, 10, tzinfo=timezone.utc),
            actual_completion_date=datetime(2025, 3, 10, tzinfo=timezone.utc),
        ),
        _workflow(
            status="completed",
            start_date=datetime(2025, 1, 1, tzinfo=timezone.utc),
            actual_completion_date=datetime(2025, 2, 20, tzinfo=timezone.utc),
        ),
    ]

    stats = compute_stats(workflows, templates_count=4, now=now)

    assert stats.active_workflows == 1
    assert stats.not_started_workflows == 1
    assert stats.completed_this_month == 2
    assert stats.avg_completion_days == (32 + 28) // 2
    assert stats.templates_count == 4
