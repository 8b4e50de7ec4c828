import pytest

from waypoint.definition import Edge, Workflow, WorkflowDefinition
from waypoint.exceptions import WorkflowDefinitionError
from waypoint.nodes import CallbackNode


def _node(node_id: str) -> CallbackNode:
    return CallbackNode(node_id, lambda input, state: {})


def test_definition_accepts_node_list():
    definition = WorkflowDefinition(
        id="wf",
        nodes=[_node("a"), _node("b")],
        edges=[Edge(source="a", target="b")],
        entry_node="a",
    )
    assert set(definition.nodes) == {"a", "b"}
    assert definition.has_node("b")
    assert definition.get_node("missing") is None


def test_dangling_edge_is_rejected():
    with pytest.raises(WorkflowDefinitionError) as exc:
        WorkflowDefinition(
            id="wf",
            nodes=[_node("a")],
            edges=[Edge(source="a", target="ghost")],
            entry_node="a",
        )
    assert "ghost" in str(exc.value)
    assert exc.value.context == {"from_node": "a", "to_node": "ghost"}


def test_unknown_entry_node_is_rejected():
    with pytest.raises(WorkflowDefinitionError):
        WorkflowDefinition(id="wf", nodes=[_node("a")], entry_node="b")


def test_node_key_must_match_node_id():
    with pytest.raises(WorkflowDefinitionError):
        WorkflowDefinition(id="wf", nodes={"x": _node("a")}, entry_node="x")


def test_unknown_exit_point_is_rejected():
    with pytest.raises(WorkflowDefinitionError):
        WorkflowDefinition(
            id="wf", nodes=[_node("a")], entry_node="a", exit_points=["z"]
        )


def test_edges_from_orders_by_priority():
    definition = WorkflowDefinition(
        id="wf",
        nodes=[_node("a"), _node("b"), _node("c")],
        edges=[
            Edge(source="a", target="b", priority=1),
            Edge(source="a", target="c", priority=5),
        ],
        entry_node="a",
    )
    assert [e.target for e in definition.edges_from("a")] == ["c", "b"]
    assert definition.edges_from("c") == []


def test_exit_points_default_to_nodes_without_edges():
    definition = WorkflowDefinition(
        id="wf",
        nodes=[_node("a"), _node("b")],
        edges=[Edge(source="a", target="b")],
        entry_node="a",
    )
    assert definition.is_exit_point("b")
    assert not definition.is_exit_point("a")


def test_builder_uses_first_node_as_entry():
    workflow = (
        Workflow("review")
        .with_name("Review")
        .with_description("Review flow")
        .callback("draft", lambda input, state: {})
        .callback("publish", lambda input, state: {})
        .then("draft", "publish")
    )
    definition = workflow.definition()
    assert definition.entry_node == "draft"
    assert definition.name == "Review"
    assert definition.description == "Review flow"
    assert [(e.source, e.target) for e in definition.edges] == [("draft", "publish")]


def test_builder_entry_override_and_validation():
    workflow = (
        Workflow("wf")
        .callback("a", lambda input, state: {})
        .callback("b", lambda input, state: {})
        .entry("b")
    )
    assert workflow.definition().entry_node == "b"

    workflow.then("b", "missing")
    with pytest.raises(WorkflowDefinitionError):
        workflow.definition()


def test_builder_without_nodes_is_invalid():
    with pytest.raises(WorkflowDefinitionError):
        Workflow("empty").definition()


def test_builder_reference_nodes_use_builder_registries():
    workflow = Workflow("wf").tool("lookup", "search")
    node = workflow.get_node("lookup")
    workflow.tools.register("search", object())
    assert node.resolve_tool() is workflow.tools.get("search")


@pytest.mark.asyncio
async def test_next_node_follows_first_matching_edge():
    from waypoint.models import WorkflowState

    definition = WorkflowDefinition(
        id="wf",
        nodes=[_node("a"), _node("b"), _node("c")],
        edges=[
            Edge(source="a", target="b"),
            Edge(source="a", target="c", condition=lambda input, state: input.get("vip"), priority=1),
        ],
        entry_node="a",
    )
    state = WorkflowState.start("wf", "r", "a")
    assert await definition.next_node("a", {"vip": True}, state) == "c"
    assert await definition.next_node("a", {}, state) == "b"
    assert await definition.next_node("c", {}, state) is None
