from onboardflow.dependencies import is_eligible, unmet_dependencies
from onboardflow.models import Step


def _step(step_id: str, status: str = "pending", deps=()) -> Step:
    return Step(
        id=step_id,
        workflow_id="wf",
        order_index=1,
        name=step_id,
        stage="day-1",
        status=status,
        dependencies=list(deps),
    )


def test_step_without_dependencies_is_eligible():
    assert is_eligible(_step("a"), {})


def test_completed_and_skipped_dependencies_are_met():
    a = _step("a", status="completed")
    b = _step("b", status="skipped")
    c = _step("c", deps=["a", "b"])
    assert is_eligible(c, {"a": a, "b": b})
    assert unmet_dependencies(c, {"a": a, "b": b}) == []


def test_unfinished_dependencies_are_reported_in_declaration_order():
    a = _step("a", status="in-progress")
    b = _step("b", status="completed")
    d = _step("d", status="failed")
    c = _step("c", deps=["d", "b", "a"])
    assert unmet_dependencies(c, {"a": a, "b": b, "d": d}) == ["d", "a"]
    assert not is_eligible(c, {"a": a, "b": b, "d": d})


def test_missing_dependency_counts_as_unmet():
    c = _step("c", deps=["ghost"])
    assert unmet_dependencies(c, {}) == ["ghost"]
    assert not is_eligible(c, {})
