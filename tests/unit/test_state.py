from datetime import datetime

import pytest

from waypoint.models import (
    NodeResult,
    WorkflowContext,
    WorkflowResult,
    WorkflowState,
    WorkflowStatus,
)


def _state() -> WorkflowState:
    return WorkflowState.start("wf", "run-1", "first", metadata={"tenant": "acme"})


def test_start_creates_pending_state_at_entry_node():
    state = _state()
    assert state.status is WorkflowStatus.PENDING
    assert state.current_node == "first"
    assert state.data == {}
    assert state.metadata == {"tenant": "acme"}
    assert isinstance(state.started_at, datetime)


def test_merge_returns_new_state_and_keeps_original():
    state = _state().merge({"a": 1})
    merged = state.merge({"b": 2, "a": 3})
    assert state.data == {"a": 1}
    assert merged.data == {"a": 3, "b": 2}
    assert merged.get("b") == 2
    assert merged.has("a")
    assert not merged.has("missing")
    assert merged.get("missing", "default") == "default"


def test_set_is_single_key_merge():
    state = _state().set("answer", 42)
    assert state.data == {"answer": 42}


def test_pause_and_resume_transitions():
    paused = _state().running().pause("Need approval")
    assert paused.status is WorkflowStatus.PAUSED
    assert paused.pause_reason == "Need approval"
    assert paused.paused_at is not None

    resumed = paused.resume()
    assert resumed.status is WorkflowStatus.RUNNING
    assert resumed.pause_reason is None
    assert resumed.paused_at is None


@pytest.mark.parametrize(
    "transition, status",
    [
        ("complete", WorkflowStatus.COMPLETED),
        ("fail", WorkflowStatus.FAILED),
        ("cancel", WorkflowStatus.CANCELLED),
    ],
)
def test_terminal_transitions_stamp_completion(transition, status):
    state = getattr(_state().running(), transition)()
    assert state.status is status
    assert state.status.is_terminal
    assert not state.status.can_resume
    assert state.completed_at is not None


def test_status_helpers():
    assert WorkflowStatus.PAUSED.can_resume
    assert WorkflowStatus.PENDING.can_resume
    assert not WorkflowStatus.RUNNING.can_resume
    assert WorkflowStatus.RUNNING.is_active
    assert not WorkflowStatus.PAUSED.is_terminal


def test_record_node_execution_appends_history():
    state = _state().record_node_execution("first", {"x": 1}, {"y": 2}, 0.01)
    state = state.record_node_execution("second", {"y": 2}, {}, 0.02, error="boom")
    assert [h.node_id for h in state.history] == ["first", "second"]
    assert state.history[0].success
    assert state.history[0].output == {"y": 2}
    assert not state.history[1].success
    assert state.history[1].error == "boom"


def test_json_serialization_preserves_state():
    state = (
        _state()
        .merge({"items": [1, 2], "nested": {"k": "v"}})
        .record_node_execution("first", {}, {"items": [1, 2]}, 0.5)
        .running()
        .pause("waiting")
    )
    restored = WorkflowState.from_json(state.to_json())
    assert restored.model_dump() == state.model_dump()
    assert restored.status is WorkflowStatus.PAUSED


def test_json_serialization_stringifies_unknown_values():
    class Opaque:
        def __str__(self) -> str:
            return "opaque"

    state = _state().merge({"value": Opaque()})
    assert state.to_jsonable()["data"]["value"] == "opaque"


def test_context_resolves_run_id_in_order():
    assert WorkflowContext(run_id="r", correlation_id="c").resolve_run_id() == "r"
    assert WorkflowContext(correlation_id="c").resolve_run_id() == "c"
    generated = WorkflowContext().resolve_run_id()
    assert generated.startswith("run_")
    assert generated != WorkflowContext().resolve_run_id()


def test_context_builders_return_copies():
    base = WorkflowContext(metadata={"a": 1})
    extended = base.with_metadata({"b": 2}).with_tenant_id("t1")
    assert base.metadata == {"a": 1}
    assert extended.metadata == {"a": 1, "b": 2}
    assert extended.tenant_id == "t1"


def test_node_result_factories():
    assert NodeResult.ok({"a": 1}).success
    paused = NodeResult.pause("why", {"k": "v"})
    assert paused.should_pause and paused.success
    assert paused.pause_reason == "why"
    failed = NodeResult.failure("bad")
    assert not failed.success and failed.error == "bad"
    assert NodeResult.goto("next").next_node == "next"


def test_workflow_result_accessors():
    state = _state().merge({"answer": 42}).complete()
    result = WorkflowResult.completed_with(state)
    assert result.is_completed and result.is_success
    assert not result.is_paused and not result.is_failed
    assert result.run_id == "run-1"
    assert result.output == {"answer": 42}
    assert result.get("answer") == 42

    failed = WorkflowResult.failed_with(_state().fail(), "boom")
    assert failed.is_failed and failed.error == "boom"

    paused = WorkflowResult.paused_with(_state().pause("later"), "later")
    assert paused.is_paused and paused.pause_reason == "later"
