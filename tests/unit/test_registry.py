import pytest

from waypoint.definition import Workflow
from waypoint.exceptions import RegistryLookupError
from waypoint.registry import ToolRegistry, WorkflowRegistry


def test_register_and_get():
    registry = ToolRegistry()
    registry.register("echo", "tool")
    assert registry.get("echo") == "tool"
    assert registry.has("echo")
    assert "echo" in registry
    assert len(registry) == 1
    assert list(registry) == ["echo"]
    assert registry.all() == {"echo": "tool"}


def test_missing_entry_raises_lookup_error():
    registry = ToolRegistry()
    with pytest.raises(RegistryLookupError) as exc:
        registry.get("nope")
    assert str(exc.value) == "Tool 'nope' not found"
    assert isinstance(exc.value, KeyError)


def test_remove_is_idempotent():
    registry = ToolRegistry({"a": 1})
    registry.remove("a")
    registry.remove("a")
    assert not registry.has("a")


def test_workflow_registry_keys_by_workflow_id():
    registry = WorkflowRegistry()
    workflow = Workflow("child")
    registry.add(workflow)
    assert registry.get("child") is workflow
