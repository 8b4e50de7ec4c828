"""Core data contracts for waypoint workflow runs."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


class WorkflowStatus(str, Enum):
    """Lifecycle status of a workflow run."""

    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            WorkflowStatus.COMPLETED,
            WorkflowStatus.FAILED,
            WorkflowStatus.CANCELLED,
        )

    @property
    def can_resume(self) -> bool:
        return self in (WorkflowStatus.PENDING, WorkflowStatus.PAUSED)

    @property
    def is_active(self) -> bool:
        return self in (WorkflowStatus.PENDING, WorkflowStatus.RUNNING)


class WorkflowHistoryEntry(BaseModel):
    """Record of a single node execution within a run."""

    node_id: str
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Dict[str, Any] = Field(default_factory=dict)
    duration: float = 0.0
    executed_at: datetime = Field(default_factory=_utcnow)
    success: bool = True
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success_entry(
        cls, node_id: str, input: Dict[str, Any], output: Dict[str, Any], duration: float
    ) -> "WorkflowHistoryEntry":
        return cls(node_id=node_id, input=input, output=output, duration=duration)

    @classmethod
    def failure_entry(
        cls, node_id: str, input: Dict[str, Any], error: str, duration: float
    ) -> "WorkflowHistoryEntry":
        return cls(
            node_id=node_id,
            input=input,
            duration=duration,
            success=False,
            error=error,
        )


class WorkflowState(BaseModel):
    """Run-scoped record of a workflow execution.

    Instances are treated as values: every transition returns a new copy
    and leaves the receiver untouched. ``data`` only ever grows or has keys
    overwritten; nodes never delete keys written by earlier nodes.
    """

    workflow_id: str
    run_id: str
    current_node: Optional[str] = None
    status: WorkflowStatus = WorkflowStatus.PENDING
    data: Dict[str, Any] = Field(default_factory=dict)
    history: List[WorkflowHistoryEntry] = Field(default_factory=list)
    pause_reason: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    started_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def start(
        cls,
        workflow_id: str,
        run_id: str,
        entry_node: Optional[str],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "WorkflowState":
        """Create a fresh ``pending`` state positioned at ``entry_node``."""
        return cls(
            workflow_id=workflow_id,
            run_id=run_id,
            current_node=entry_node,
            status=WorkflowStatus.PENDING,
            metadata=dict(metadata or {}),
            started_at=_utcnow(),
        )

    # ------------------------------------------------------------------
    # Data access
    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def has(self, key: str) -> bool:
        return key in self.data

    def set(self, key: str, value: Any) -> "WorkflowState":
        return self.merge({key: value})

    def merge(self, partial: Optional[Dict[str, Any]]) -> "WorkflowState":
        """Return a copy with ``partial`` shallow-merged into ``data``."""
        if not partial:
            return self.model_copy()
        return self.model_copy(update={"data": {**self.data, **partial}})

    # ------------------------------------------------------------------
    # Transitions
    def move_to(self, node_id: Optional[str]) -> "WorkflowState":
        return self.model_copy(update={"current_node": node_id})

    def record_node_execution(
        self,
        node_id: str,
        input: Dict[str, Any],
        output: Dict[str, Any],
        duration: float,
        error: Optional[str] = None,
    ) -> "WorkflowState":
        if error is not None:
            entry = WorkflowHistoryEntry.failure_entry(node_id, input, error, duration)
        else:
            entry = WorkflowHistoryEntry.success_entry(node_id, input, output, duration)
        return self.model_copy(update={"history": [*self.history, entry]})

    def running(self) -> "WorkflowState":
        return self.model_copy(update={"status": WorkflowStatus.RUNNING})

    def pause(self, reason: str) -> "WorkflowState":
        return self.model_copy(
            update={
                "status": WorkflowStatus.PAUSED,
                "pause_reason": reason,
                "paused_at": _utcnow(),
            }
        )

    def resume(self) -> "WorkflowState":
        return self.model_copy(
            update={
                "status": WorkflowStatus.RUNNING,
                "pause_reason": None,
                "paused_at": None,
            }
        )

    def complete(self) -> "WorkflowState":
        return self._finish(WorkflowStatus.COMPLETED)

    def fail(self) -> "WorkflowState":
        return self._finish(WorkflowStatus.FAILED)

    def cancel(self) -> "WorkflowState":
        return self._finish(WorkflowStatus.CANCELLED)

    def _finish(self, status: WorkflowStatus) -> "WorkflowState":
        return self.model_copy(
            update={
                "status": status,
                "pause_reason": None,
                "paused_at": None,
                "completed_at": _utcnow(),
            }
        )

    # ------------------------------------------------------------------
    # Serialization
    def to_json(self) -> str:
        """Serialize the state; values that are not JSON-native are stringified."""
        return json.dumps(self.model_dump(), default=_json_default)

    def to_jsonable(self) -> Dict[str, Any]:
        return json.loads(self.to_json())

    @classmethod
    def from_json(cls, data: str | bytes) -> "WorkflowState":
        return cls.model_validate(json.loads(data))


class NodeResult(BaseModel):
    """Outcome of a single node execution.

    Only its effect on :class:`WorkflowState` is ever persisted.
    """

    output: Dict[str, Any] = Field(default_factory=dict)
    next_node: Optional[str] = None
    should_pause: bool = False
    pause_reason: Optional[str] = None
    success: bool = True
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(
        cls, output: Optional[Dict[str, Any]] = None, next_node: Optional[str] = None
    ) -> "NodeResult":
        return cls(output=output or {}, next_node=next_node)

    @classmethod
    def pause(cls, reason: str, output: Optional[Dict[str, Any]] = None) -> "NodeResult":
        return cls(output=output or {}, should_pause=True, pause_reason=reason)

    @classmethod
    def failure(cls, error: str) -> "NodeResult":
        return cls(success=False, error=error)

    @classmethod
    def goto(cls, node_id: str, output: Optional[Dict[str, Any]] = None) -> "NodeResult":
        return cls(output=output or {}, next_node=node_id)


class WorkflowContext(BaseModel):
    """Per-call execution context supplied by the caller. Never persisted."""

    run_id: Optional[str] = None
    tenant_id: Optional[str] = None
    correlation_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def with_run_id(self, run_id: str) -> "WorkflowContext":
        return self.model_copy(update={"run_id": run_id})

    def with_tenant_id(self, tenant_id: str) -> "WorkflowContext":
        return self.model_copy(update={"tenant_id": tenant_id})

    def with_metadata(self, metadata: Dict[str, Any]) -> "WorkflowContext":
        return self.model_copy(update={"metadata": {**self.metadata, **metadata}})

    def resolve_run_id(self) -> str:
        """Run id for a new run: explicit run id, then correlation id, then generated."""
        return self.run_id or self.correlation_id or f"run_{uuid.uuid4().hex}"


class WorkflowResult(BaseModel):
    """Outcome of one run segment (completed, failed or paused)."""

    state: WorkflowState
    completed: bool = False
    paused: bool = False
    pause_reason: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def completed_with(cls, state: WorkflowState) -> "WorkflowResult":
        return cls(state=state, completed=True)

    @classmethod
    def paused_with(cls, state: WorkflowState, reason: str) -> "WorkflowResult":
        return cls(state=state, paused=True, pause_reason=reason)

    @classmethod
    def failed_with(cls, state: WorkflowState, error: Optional[str] = None) -> "WorkflowResult":
        return cls(state=state, error=error)

    @property
    def run_id(self) -> str:
        return self.state.run_id

    @property
    def output(self) -> Dict[str, Any]:
        return self.state.data

    def get(self, key: str, default: Any = None) -> Any:
        return self.state.get(key, default)

    @property
    def is_success(self) -> bool:
        return self.is_completed

    @property
    def is_completed(self) -> bool:
        return self.completed and self.state.status is WorkflowStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.state.status is WorkflowStatus.FAILED

    @property
    def is_paused(self) -> bool:
        return self.paused and self.state.status is WorkflowStatus.PAUSED
