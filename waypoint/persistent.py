"""Executor decorator that makes run segment boundaries durable."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from .definition import WorkflowDefinition
from .events import EventDispatcher, Listener, WorkflowEvent
from .exceptions import (
    InvalidWorkflowStateError,
    WorkflowExecutionError,
    WorkflowNotFoundException,
    WorkflowNotPausedException,
)
from .executor import WorkflowExecutor, WorkflowLike, definition_of
from .models import WorkflowContext, WorkflowResult, WorkflowState, WorkflowStatus
from .persistence.repository import WorkflowStateRepository

logger = logging.getLogger(__name__)


class PersistentWorkflowExecutor:
    """Wrap a :class:`WorkflowExecutor` and persist state around each segment.

    Every call to :meth:`execute`, :meth:`resume` or :meth:`resume_by_run_id`
    writes to the repository exactly twice: once before the inner executor
    runs and once with the state it ended in. Steps in between are not
    persisted, so after a crash the stored snapshot is either the pre-run
    state or a paused/terminal one.

    Listeners are shared with the inner executor. Started and resumed
    events fire after the first write; paused, completed and failed events
    fire after the second.
    """

    def __init__(
        self,
        executor: Optional[WorkflowExecutor] = None,
        repository: Optional[WorkflowStateRepository] = None,
        listeners: Optional[Iterable[Listener]] = None,
    ) -> None:
        if repository is None:
            from .persistence import get_repository

            repository = get_repository()
        self.executor = executor or WorkflowExecutor()
        self.repository = repository
        for listener in listeners or []:
            self.executor.add_listener(listener)

    @property
    def events(self) -> EventDispatcher:
        return self.executor.events

    def max_steps(self, max_steps: int) -> "PersistentWorkflowExecutor":
        self.executor.max_steps(max_steps)
        return self

    def add_listener(self, listener: Listener) -> "PersistentWorkflowExecutor":
        self.executor.add_listener(listener)
        return self

    async def execute(
        self,
        workflow: WorkflowLike,
        input: Optional[Dict[str, Any]] = None,
        context: Optional[WorkflowContext] = None,
    ) -> WorkflowResult:
        definition = definition_of(workflow)
        state = self.executor.initial_state(definition, input, context)
        await self.repository.save(state)
        logger.info(f"Persisted new run {state.run_id} of workflow {definition.id}")
        await self.events.dispatch(
            WorkflowEvent.STARTED,
            workflow_id=definition.id,
            run_id=state.run_id,
            input=dict(input or {}),
        )
        return await self._run_segment(definition, state, input)

    async def resume(
        self,
        workflow: WorkflowLike,
        state: WorkflowState,
        input: Optional[Dict[str, Any]] = None,
    ) -> WorkflowResult:
        if state.status is not WorkflowStatus.PAUSED:
            raise WorkflowNotPausedException.with_status(state.run_id, state.status)

        definition = definition_of(workflow)
        state = state.resume().merge(input)
        await self.repository.save(state)
        logger.info(f"Resuming run {state.run_id} of workflow {definition.id}")
        await self.events.dispatch(
            WorkflowEvent.RESUMED,
            workflow_id=definition.id,
            run_id=state.run_id,
            state=state,
            input=dict(input or {}),
        )
        return await self._run_segment(definition, state, input)

    async def resume_by_run_id(
        self,
        workflow: WorkflowLike,
        run_id: str,
        input: Optional[Dict[str, Any]] = None,
    ) -> WorkflowResult:
        state = await self.repository.find(run_id)
        if state is None:
            raise WorkflowNotFoundException.for_run_id(run_id)
        return await self.resume(workflow, state, input)

    async def get_state(self, run_id: str) -> Optional[WorkflowState]:
        return await self.repository.find(run_id)

    async def cancel(self, run_id: str) -> WorkflowState:
        """Mark a pending, running or paused run as cancelled."""
        state = await self.repository.find(run_id)
        if state is None:
            raise WorkflowNotFoundException.for_run_id(run_id)
        if state.status.is_terminal:
            raise InvalidWorkflowStateError(run_id, state.status)
        state = state.cancel()
        await self.repository.save(state)
        logger.info(f"Cancelled run {run_id}")
        return state

    async def _run_segment(
        self,
        definition: WorkflowDefinition,
        state: WorkflowState,
        input: Optional[Dict[str, Any]],
    ) -> WorkflowResult:
        try:
            result = await self.executor.run_segment(definition, state, input)
        except WorkflowExecutionError as e:
            if e.state is not None:
                await self.repository.save(e.state)
                logger.error(f"Run {state.run_id} aborted and persisted as {e.state.status.value}: {e}")
                await self.events.dispatch_result(
                    definition.id, WorkflowResult.failed_with(e.state, str(e))
                )
            raise
        await self.repository.save(result.state)
        logger.debug(f"Persisted run {result.run_id} with status {result.state.status.value}")
        await self.events.dispatch_result(definition.id, result)
        return result
