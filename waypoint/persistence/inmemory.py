"""In-memory implementation of the run state repository."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, Tuple

from ..models import WorkflowState, WorkflowStatus
from .repository import TERMINAL_STATUSES, WorkflowStateRepository


def _newest_first(states: list[WorkflowState]) -> list[WorkflowState]:
    floor = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(states, key=lambda s: s.started_at or floor, reverse=True)


class InMemoryWorkflowStateRepository(WorkflowStateRepository):
    """Keep run state in local memory.

    Useful for tests or when no database is configured. Snapshots are
    copied on the way in and out so callers cannot mutate stored state.
    Data is lost when the process exits.
    """

    def __init__(self) -> None:
        self._states: Dict[str, Tuple[WorkflowState, datetime]] = {}

    # ------------------------------------------------------------------
    async def save(self, state: WorkflowState) -> None:
        self._states[state.run_id] = (
            state.model_copy(deep=True),
            datetime.now(timezone.utc),
        )

    async def find(self, run_id: str) -> WorkflowState | None:
        entry = self._states.get(run_id)
        return entry[0].model_copy(deep=True) if entry else None

    async def find_by_workflow(self, workflow_id: str) -> list[WorkflowState]:
        return _newest_first(
            [s.model_copy(deep=True) for s, _ in self._states.values() if s.workflow_id == workflow_id]
        )

    async def find_by_status(self, status: WorkflowStatus) -> list[WorkflowState]:
        return _newest_first(
            [s.model_copy(deep=True) for s, _ in self._states.values() if s.status is status]
        )

    async def list_states(self) -> list[WorkflowState]:
        return _newest_first([s.model_copy(deep=True) for s, _ in self._states.values()])

    async def delete(self, run_id: str) -> None:
        self._states.pop(run_id, None)

    async def delete_expired(self, ttl: int) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=ttl)
        expired = [
            run_id
            for run_id, (state, updated_at) in self._states.items()
            if state.status in TERMINAL_STATUSES and updated_at < cutoff
        ]
        for run_id in expired:
            del self._states[run_id]
        return len(expired)
