import pytest

from waypoint.definition import Workflow, WorkflowDefinition
from waypoint.events import WorkflowEvent
from waypoint.exceptions import (
    InvalidWorkflowStateError,
    MaxStepsExceededError,
    NodeNotFoundError,
)
from waypoint.executor import WorkflowExecutor
from waypoint.models import NodeResult, WorkflowContext, WorkflowState, WorkflowStatus
from waypoint.nodes import Node


class ExplodingNode(Node):
    async def execute(self, input, state):
        raise RuntimeError("kaboom")


def _linear() -> Workflow:
    return (
        Workflow("linear")
        .callback("a", lambda input, state: {"x": 1})
        .callback("b", lambda input, state: {"y": input["x"] + 1})
        .then("a", "b")
    )


@pytest.mark.asyncio
async def test_linear_workflow_completes():
    result = await WorkflowExecutor().execute(_linear(), {"seed": True})
    assert result.is_completed
    assert result.state.status is WorkflowStatus.COMPLETED
    assert result.state.current_node is None
    assert result.output == {"seed": True, "x": 1, "y": 2}
    assert [h.node_id for h in result.state.history] == ["a", "b"]
    assert result.state.history[1].input == {"seed": True, "x": 1}


@pytest.mark.asyncio
async def test_context_supplies_run_id_and_metadata():
    context = WorkflowContext(correlation_id="corr-1", metadata={"tenant": "acme"})
    result = await WorkflowExecutor().execute(_linear(), {}, context)
    assert result.run_id == "corr-1"
    assert result.state.metadata == {"tenant": "acme"}


@pytest.mark.asyncio
async def test_condition_node_branches():
    workflow = (
        Workflow("branching")
        .condition("check", lambda input, state: input["n"] > 10, {"true": "big", "false": "small"})
        .callback("big", lambda input, state: {"size": "big"})
        .callback("small", lambda input, state: {"size": "small"})
    )
    executor = WorkflowExecutor()
    assert (await executor.execute(workflow, {"n": 50})).get("size") == "big"
    small = await executor.execute(workflow, {"n": 1})
    assert small.get("size") == "small"
    assert [h.node_id for h in small.state.history] == ["check", "small"]


@pytest.mark.asyncio
async def test_edge_conditions_respect_priority():
    workflow = (
        Workflow("routing")
        .callback("start", lambda input, state: {"score": input["score"]})
        .callback("low", lambda input, state: {"route": "low"})
        .callback("high", lambda input, state: {"route": "high"})
        .edge("start", "low", priority=0)
        .edge("start", "high", lambda input, state: input["score"] > 5, priority=10)
    )
    executor = WorkflowExecutor()
    assert (await executor.execute(workflow, {"score": 9})).get("route") == "high"
    assert (await executor.execute(workflow, {"score": 2})).get("route") == "low"


@pytest.mark.asyncio
async def test_async_edge_condition():
    async def ready(input, state):
        return True

    workflow = (
        Workflow("async-edge")
        .callback("a", lambda i, s: {})
        .callback("b", lambda i, s: {"reached": True})
        .edge("a", "b", ready)
    )
    assert (await WorkflowExecutor().execute(workflow)).get("reached")


@pytest.mark.asyncio
async def test_next_node_override_beats_edges():
    workflow = (
        Workflow("override")
        .callback("a", lambda input, state: NodeResult.goto("c", {"jumped": True}))
        .callback("b", lambda input, state: {"b": True})
        .callback("c", lambda input, state: {"c": True})
        .then("a", "b")
    )
    result = await WorkflowExecutor().execute(workflow)
    assert result.output == {"jumped": True, "c": True}


@pytest.mark.asyncio
async def test_node_failure_fails_run():
    workflow = (
        Workflow("failing")
        .callback("a", lambda input, state: NodeResult.failure("bad input"))
        .callback("b", lambda input, state: {})
        .then("a", "b")
    )
    result = await WorkflowExecutor().execute(workflow)
    assert result.is_failed
    assert result.error == "bad input"
    assert result.state.current_node == "a"
    assert result.state.history[-1].error == "bad input"


@pytest.mark.asyncio
async def test_node_exception_fails_run():
    workflow = Workflow("exploding").add_node(ExplodingNode("boom"))
    result = await WorkflowExecutor().execute(workflow)
    assert result.is_failed
    assert result.error == "kaboom"


@pytest.mark.asyncio
async def test_edge_condition_exception_fails_run():
    def broken(input, state):
        raise ValueError("no route")

    workflow = (
        Workflow("edges")
        .callback("a", lambda i, s: {})
        .callback("b", lambda i, s: {})
        .edge("a", "b", broken)
    )
    result = await WorkflowExecutor().execute(workflow)
    assert result.is_failed
    assert result.error == "Edge evaluation failed: no route"


@pytest.mark.asyncio
async def test_max_steps_guards_cycles():
    workflow = Workflow("cycle").callback("spin", lambda i, s: {}).then("spin", "spin")
    executor = WorkflowExecutor().max_steps(5)
    with pytest.raises(MaxStepsExceededError) as exc:
        await executor.execute(workflow)
    assert exc.value.state.status is WorkflowStatus.FAILED
    assert len(exc.value.state.history) == 5


def test_max_steps_validation_and_chaining():
    executor = WorkflowExecutor()
    assert executor.max_steps(3) is executor
    assert executor.step_budget == 3
    with pytest.raises(ValueError):
        executor.max_steps(0)


@pytest.mark.asyncio
async def test_unknown_current_node_is_fatal():
    workflow = _linear()
    state = WorkflowState.start("linear", "run-x", "ghost")
    with pytest.raises(NodeNotFoundError) as exc:
        await WorkflowExecutor().resume(workflow, state)
    assert exc.value.node_id == "ghost"
    assert exc.value.state.status is WorkflowStatus.FAILED


@pytest.mark.asyncio
async def test_pending_state_resume_equals_fresh_run():
    executor = WorkflowExecutor()
    definition = _linear().definition()
    state = executor.initial_state(definition, {"seed": 1}, WorkflowContext(run_id="r"))
    via_resume = await executor.resume(definition, state, {"seed": 1})
    via_execute = await executor.execute(definition, {"seed": 1}, WorkflowContext(run_id="r"))
    assert via_resume.output == via_execute.output
    assert via_resume.state.status is via_execute.state.status


@pytest.mark.asyncio
async def test_pause_then_resume_continues_from_paused_node():
    workflow = (
        Workflow("approval")
        .callback("prepare", lambda input, state: {"draft": "v1"})
        .human_input("approve", "Approve the draft?")
        .callback("publish", lambda input, state: {"published": input["human_input"] == "yes"})
        .then("prepare", "approve")
        .then("approve", "publish")
    )
    executor = WorkflowExecutor()
    paused = await executor.execute(workflow)
    assert paused.is_paused
    assert paused.pause_reason == "Approve the draft?"
    assert paused.state.current_node == "approve"
    assert paused.get("awaiting_input") is True

    resumed = await executor.resume(workflow, paused.state, {"human_input": "yes"})
    assert resumed.is_completed
    assert resumed.get("published") is True
    assert resumed.get("draft") == "v1"
    assert resumed.get("awaiting_input") is False
    assert [h.node_id for h in resumed.state.history] == ["prepare", "approve", "approve", "publish"]


@pytest.mark.asyncio
@pytest.mark.parametrize("finish", ["complete", "fail", "cancel"])
async def test_resume_rejects_terminal_states(finish):
    state = getattr(WorkflowState.start("linear", "r", "a"), finish)()
    with pytest.raises(InvalidWorkflowStateError):
        await WorkflowExecutor().resume(_linear(), state)


@pytest.mark.asyncio
async def test_builder_run_and_resume_shortcuts():
    workflow = Workflow("shortcut").human_input("ask", "Name?")
    paused = await workflow.run()
    assert paused.is_paused
    done = await workflow.resume(paused.state, {"human_input": "ada"})
    assert done.get("human_input") == "ada"


@pytest.mark.asyncio
async def test_sub_workflow_pause_resumes_child():
    child = (
        Workflow("child")
        .human_input("confirm", "Confirm?")
        .callback("finish", lambda input, state: {"child_done": True})
        .then("confirm", "finish")
    )
    parent = (
        Workflow("parent")
        .sub_workflow("sub", child)
        .callback("after", lambda input, state: {"parent_done": input.get("child_done", False)})
        .then("sub", "after")
    )
    executor = WorkflowExecutor()
    paused = await executor.execute(parent, context=WorkflowContext(run_id="p1"))
    assert paused.is_paused
    assert paused.pause_reason == "Sub-workflow paused: Confirm?"
    assert paused.get("sub_workflow_state")["run_id"] == "p1:sub"

    done = await executor.resume(parent, paused.state, {"human_input": "ok"})
    assert done.is_completed
    assert done.get("parent_done") is True
    assert done.get("sub_workflow_state") is None


def test_executor_from_config():
    from waypoint.config import ExecutorConfig, WaypointConfig

    executor = WorkflowExecutor.from_config(WaypointConfig(executor=ExecutorConfig(max_steps=7)))
    assert executor.step_budget == 7


def _recorder(events):
    def listener(event, payload):
        events.append((event, payload.get("node_id")))

    return listener


def _approval_flow() -> Workflow:
    return (
        Workflow("approval")
        .human_input("approve", "Approve?")
        .callback("publish", lambda input, state: {"published": True})
        .then("approve", "publish")
    )


@pytest.mark.asyncio
async def test_lifecycle_events_for_pause_then_resume():
    events = []
    executor = WorkflowExecutor(listeners=[_recorder(events)])
    paused = await executor.execute(_approval_flow())
    assert events == [
        (WorkflowEvent.STARTED, None),
        (WorkflowEvent.NODE_ENTERED, "approve"),
        (WorkflowEvent.NODE_EXITED, "approve"),
        (WorkflowEvent.PAUSED, None),
    ]

    events.clear()
    await executor.resume(_approval_flow(), paused.state, {"human_input": "yes"})
    assert events == [
        (WorkflowEvent.RESUMED, None),
        (WorkflowEvent.NODE_ENTERED, "approve"),
        (WorkflowEvent.NODE_EXITED, "approve"),
        (WorkflowEvent.NODE_ENTERED, "publish"),
        (WorkflowEvent.NODE_EXITED, "publish"),
        (WorkflowEvent.COMPLETED, None),
    ]


@pytest.mark.asyncio
async def test_async_listener_receives_pause_payload():
    received = {}

    async def on_event(event, payload):
        if event is WorkflowEvent.PAUSED:
            received.update(payload)

    executor = WorkflowExecutor().add_listener(on_event)
    paused = await executor.execute(_approval_flow(), context=WorkflowContext(run_id="r-9"))
    assert received["workflow_id"] == "approval"
    assert received["run_id"] == "r-9"
    assert received["reason"] == "Approve?"
    assert received["state"] == paused.state


@pytest.mark.asyncio
async def test_failure_events_carry_error():
    failures = []

    def on_event(event, payload):
        if event is WorkflowEvent.FAILED:
            failures.append(payload["error"])

    workflow = Workflow("bad").add_node(ExplodingNode("explode"))
    result = await WorkflowExecutor(listeners=[on_event]).execute(workflow)
    assert result.is_failed
    assert failures == ["kaboom"]

    spin = Workflow("cycle").callback("spin", lambda i, s: {}).then("spin", "spin")
    with pytest.raises(MaxStepsExceededError):
        await WorkflowExecutor(max_steps=2, listeners=[on_event]).execute(spin)
    assert len(failures) == 2


@pytest.mark.asyncio
async def test_raising_listener_does_not_change_outcome():
    def broken(event, payload):
        raise RuntimeError("listener down")

    result = await WorkflowExecutor(listeners=[broken]).execute(_linear())
    assert result.is_completed


@pytest.mark.asyncio
async def test_tenant_id_is_recorded_in_metadata():
    context = WorkflowContext(metadata={"source": "api"}).with_tenant_id("acme")
    result = await WorkflowExecutor().execute(_linear(), {}, context)
    assert result.state.metadata == {"source": "api", "tenant_id": "acme"}


@pytest.mark.asyncio
async def test_explicit_exit_point_ends_run():
    definition = WorkflowDefinition(
        id="short",
        nodes=_linear().definition().nodes,
        edges=_linear().definition().edges,
        entry_node="a",
        exit_points=["a"],
    )
    result = await WorkflowExecutor().execute(definition)
    assert result.is_completed
    assert [h.node_id for h in result.state.history] == ["a"]


@pytest.mark.asyncio
async def test_second_approval_pauses_once_answer_is_cleared():
    workflow = (
        Workflow("two-step")
        .human_input("first", "First approval?")
        .callback("clear", lambda input, state: {"first_answer": input["human_input"], "human_input": None})
        .human_input("second", "Second approval?")
        .then("first", "clear")
        .then("clear", "second")
    )
    executor = WorkflowExecutor()
    paused = await executor.execute(workflow)
    again = await executor.resume(workflow, paused.state, {"human_input": "yes"})
    assert again.is_paused
    assert again.state.current_node == "second"
    assert again.get("first_answer") == "yes"

    done = await executor.resume(workflow, again.state, {"human_input": "also yes"})
    assert done.is_completed
    assert done.get("human_input") == "also yes"
