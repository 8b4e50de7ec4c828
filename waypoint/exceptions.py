"""Exception hierarchy for the waypoint workflow engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from .models import WorkflowState, WorkflowStatus


class WaypointError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}


class WorkflowDefinitionError(WaypointError):
    """Raised when a workflow graph is malformed at build time."""

    @classmethod
    def unknown_entry(cls, workflow_id: str, entry_node: Optional[str]) -> "WorkflowDefinitionError":
        return cls(
            f"Workflow '{workflow_id}' entry node '{entry_node}' is not defined",
            {"workflow_id": workflow_id, "entry_node": entry_node},
        )

    @classmethod
    def invalid_edge(cls, source: str, target: str, reason: str) -> "WorkflowDefinitionError":
        return cls(
            f"Invalid edge from '{source}' to '{target}': {reason}",
            {"from_node": source, "to_node": target},
        )


class WorkflowExecutionError(WaypointError):
    """Fatal error that aborts a run segment.

    ``state`` holds the run state at the moment the loop was aborted so
    callers can still persist it.
    """

    def __init__(
        self,
        message: str,
        state: Optional["WorkflowState"] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, context)
        self.state = state


class NodeNotFoundError(WorkflowExecutionError):
    """The run points at a node id that the definition does not contain."""

    def __init__(self, node_id: str, state: Optional["WorkflowState"] = None) -> None:
        super().__init__(
            f"Node '{node_id}' not found in workflow", state, {"node_id": node_id}
        )
        self.node_id = node_id


class MaxStepsExceededError(WorkflowExecutionError):
    """The step budget of a run segment was exhausted."""

    def __init__(
        self, workflow_id: str, max_steps: int, state: Optional["WorkflowState"] = None
    ) -> None:
        super().__init__(
            f"Workflow '{workflow_id}' exceeded max steps ({max_steps})",
            state,
            {"workflow_id": workflow_id, "max_steps": max_steps},
        )
        self.max_steps = max_steps


class InvalidWorkflowStateError(WaypointError):
    """A run was handed to the executor in a state it cannot continue from."""

    def __init__(self, run_id: str, status: "WorkflowStatus") -> None:
        super().__init__(
            f"Cannot continue workflow run '{run_id}' in '{status.value}' state",
            {"run_id": run_id, "state": status.value},
        )


class WorkflowNotPausedException(WaypointError):
    """``resume`` was called on a run that is not paused."""

    @classmethod
    def with_status(cls, run_id: str, status: "WorkflowStatus") -> "WorkflowNotPausedException":
        return cls(
            f"Workflow run '{run_id}' is in '{status.value}' state and cannot be resumed.",
            {"run_id": run_id, "state": status.value},
        )


class WorkflowNotFoundException(WaypointError):
    """No persisted state exists for the requested run."""

    @classmethod
    def for_run_id(cls, run_id: str) -> "WorkflowNotFoundException":
        return cls(f"Workflow run '{run_id}' not found.", {"run_id": run_id})


class RegistryLookupError(WaypointError, KeyError):
    """A collaborator referenced by id is not registered."""

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"{kind} '{key}' not found", {"kind": kind, "key": key})
        self.key = key

    def __str__(self) -> str:  # KeyError would repr() the message
        return self.message
