"""Lifecycle events emitted while runs execute."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from .models import WorkflowResult, WorkflowStatus
from .utils.callables import call_maybe_async

logger = logging.getLogger(__name__)


class WorkflowEvent(str, Enum):
    STARTED = "workflow.started"
    RESUMED = "workflow.resumed"
    NODE_ENTERED = "workflow.node_entered"
    NODE_EXITED = "workflow.node_exited"
    PAUSED = "workflow.paused"
    COMPLETED = "workflow.completed"
    FAILED = "workflow.failed"


Listener = Callable[[WorkflowEvent, Dict[str, Any]], Any]


class EventDispatcher:
    """Fan lifecycle events out to plain or async listeners.

    Listeners receive ``(event, payload)``. A listener that raises is logged
    and skipped; it never changes the outcome of the run.
    """

    def __init__(self, listeners: Optional[Iterable[Listener]] = None) -> None:
        self._listeners: List[Listener] = list(listeners or [])

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    @property
    def listeners(self) -> List[Listener]:
        return list(self._listeners)

    async def dispatch(self, event: WorkflowEvent, **payload: Any) -> None:
        for listener in list(self._listeners):
            try:
                await call_maybe_async(listener, event, payload)
            except Exception:
                logger.exception(f"Listener {listener!r} failed handling {event.value}")

    async def dispatch_result(self, workflow_id: str, result: WorkflowResult) -> None:
        """Emit the paused, completed or failed event matching ``result``."""
        state = result.state
        common = {"workflow_id": workflow_id, "run_id": state.run_id, "state": state}
        if state.status is WorkflowStatus.COMPLETED:
            await self.dispatch(WorkflowEvent.COMPLETED, output=result.output, **common)
        elif state.status is WorkflowStatus.PAUSED:
            await self.dispatch(WorkflowEvent.PAUSED, reason=result.pause_reason, **common)
        elif state.status is WorkflowStatus.FAILED:
            await self.dispatch(
                WorkflowEvent.FAILED, error=result.error or "Workflow failed", **common
            )
