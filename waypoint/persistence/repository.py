"""Repository abstraction for workflow run state."""

from __future__ import annotations

from typing import Protocol

from ..models import WorkflowState, WorkflowStatus

TERMINAL_STATUSES = (
    WorkflowStatus.COMPLETED,
    WorkflowStatus.FAILED,
    WorkflowStatus.CANCELLED,
)


class WorkflowStateRepository(Protocol):
    """Protocol for run state persistence backends.

    ``save`` is a latest-wins upsert keyed by ``run_id``.
    """

    async def save(self, state: WorkflowState) -> None:
        """Persist ``state``, replacing any previous snapshot of the run."""

    async def find(self, run_id: str) -> WorkflowState | None:
        """Return the latest snapshot of ``run_id`` or ``None``."""

    async def find_by_workflow(self, workflow_id: str) -> list[WorkflowState]:
        """Return all runs of a workflow, newest first."""

    async def find_by_status(self, status: WorkflowStatus) -> list[WorkflowState]:
        """Return all runs currently in ``status``, newest first."""

    async def list_states(self) -> list[WorkflowState]:
        """Return every persisted run, newest first."""

    async def delete(self, run_id: str) -> None:
        """Remove a run. Deleting an unknown run is a no-op."""

    async def delete_expired(self, ttl: int) -> int:
        """Delete finished runs not updated in ``ttl`` seconds; return the count."""
