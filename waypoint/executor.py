"""Control loop that walks a workflow graph one node at a time."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, Optional, Union

from .config import WaypointConfig, load_config
from .definition import Workflow, WorkflowDefinition
from .events import EventDispatcher, Listener, WorkflowEvent
from .exceptions import (
    InvalidWorkflowStateError,
    MaxStepsExceededError,
    NodeNotFoundError,
    WorkflowExecutionError,
)
from .models import (
    NodeResult,
    WorkflowContext,
    WorkflowResult,
    WorkflowState,
    WorkflowStatus,
)
from .nodes.base import Node
from .nodes.condition import NEXT_NODE_KEY

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 1000
TENANT_METADATA_KEY = "tenant_id"

WorkflowLike = Union[Workflow, WorkflowDefinition]


def definition_of(workflow: WorkflowLike) -> WorkflowDefinition:
    """Return the validated definition for a builder or a definition."""
    if isinstance(workflow, WorkflowDefinition):
        return workflow
    return workflow.definition()


class WorkflowExecutor:
    """Execute workflow runs segment by segment.

    A segment starts at ``state.current_node`` and ends when the run
    completes, fails or pauses. Nothing is persisted here; see
    :class:`~waypoint.persistent.PersistentWorkflowExecutor` for that.

    ``listeners`` are called with ``(event, payload)`` for every
    :class:`~waypoint.events.WorkflowEvent`; they may be plain functions or
    coroutines.
    """

    def __init__(
        self,
        max_steps: int = DEFAULT_MAX_STEPS,
        listeners: Optional[Iterable[Listener]] = None,
    ) -> None:
        self._max_steps = max_steps
        self.events = EventDispatcher(listeners)

    @classmethod
    def from_config(
        cls,
        config: Optional[WaypointConfig] = None,
        listeners: Optional[Iterable[Listener]] = None,
    ) -> "WorkflowExecutor":
        config = config or load_config()
        return cls(max_steps=config.executor.max_steps, listeners=listeners)

    def max_steps(self, max_steps: int) -> "WorkflowExecutor":
        """Set the per-segment step budget. Returns ``self`` for chaining."""
        if max_steps < 1:
            raise ValueError("max_steps must be >= 1")
        self._max_steps = max_steps
        return self

    def add_listener(self, listener: Listener) -> "WorkflowExecutor":
        self.events.add_listener(listener)
        return self

    @property
    def step_budget(self) -> int:
        return self._max_steps

    def initial_state(
        self,
        definition: WorkflowDefinition,
        input: Optional[Dict[str, Any]] = None,
        context: Optional[WorkflowContext] = None,
    ) -> WorkflowState:
        """Build the ``pending`` state a new run starts from."""
        context = context or WorkflowContext()
        metadata = dict(context.metadata)
        if context.tenant_id is not None:
            metadata[TENANT_METADATA_KEY] = context.tenant_id
        return WorkflowState.start(
            definition.id,
            context.resolve_run_id(),
            definition.entry_node,
            metadata=metadata,
        ).merge(input)

    async def execute(
        self,
        workflow: WorkflowLike,
        input: Optional[Dict[str, Any]] = None,
        context: Optional[WorkflowContext] = None,
    ) -> WorkflowResult:
        """Start a new run from the entry node."""
        definition = definition_of(workflow)
        state = self.initial_state(definition, input, context)
        logger.info(f"Workflow {definition.id} started run_id={state.run_id}")
        await self.events.dispatch(
            WorkflowEvent.STARTED,
            workflow_id=definition.id,
            run_id=state.run_id,
            input=dict(input or {}),
        )
        return await self._run_announced(definition, state, dict(input or {}))

    async def resume(
        self,
        workflow: WorkflowLike,
        state: WorkflowState,
        input: Optional[Dict[str, Any]] = None,
    ) -> WorkflowResult:
        """Continue ``state`` from its current node.

        A pending state at the entry node behaves exactly like a new run.
        """
        if state.status.is_terminal:
            raise InvalidWorkflowStateError(state.run_id, state.status)

        definition = definition_of(workflow)
        input = dict(input or {})
        was_paused = state.status is WorkflowStatus.PAUSED
        state = state.resume().merge(input)
        if was_paused:
            logger.info(
                f"Workflow {definition.id} resumed run_id={state.run_id} at node={state.current_node}"
            )
            await self.events.dispatch(
                WorkflowEvent.RESUMED,
                workflow_id=definition.id,
                run_id=state.run_id,
                state=state,
                input=input,
            )
        return await self._run_announced(definition, state, input)

    async def run_segment(
        self,
        definition: WorkflowDefinition,
        state: WorkflowState,
        input: Optional[Dict[str, Any]] = None,
    ) -> WorkflowResult:
        """Run an already resumed state without start, resume or outcome events.

        Node events are still emitted. Callers that wrap the executor use
        this to announce the outcome themselves once it is durable.
        """
        if state.status.is_terminal:
            raise InvalidWorkflowStateError(state.run_id, state.status)
        return await self._run_loop(definition, state.resume(), dict(input or {}))

    async def _run_announced(
        self,
        definition: WorkflowDefinition,
        state: WorkflowState,
        input: Dict[str, Any],
    ) -> WorkflowResult:
        try:
            result = await self._run_loop(definition, state, input)
        except WorkflowExecutionError as e:
            if e.state is not None:
                await self.events.dispatch_result(
                    definition.id, WorkflowResult.failed_with(e.state, str(e))
                )
            raise
        await self.events.dispatch_result(definition.id, result)
        return result

    async def _run_loop(
        self,
        definition: WorkflowDefinition,
        state: WorkflowState,
        input: Dict[str, Any],
    ) -> WorkflowResult:
        steps = 0
        while True:
            if state.current_node is None:
                return self._complete(definition, state)
            if steps >= self._max_steps:
                state = state.fail()
                logger.error(
                    f"Workflow {definition.id} run_id={state.run_id} exceeded max steps ({self._max_steps})"
                )
                raise MaxStepsExceededError(definition.id, self._max_steps, state)
            steps += 1

            node = definition.get_node(state.current_node)
            if node is None:
                state = state.fail()
                logger.error(
                    f"Workflow {definition.id} run_id={state.run_id} references unknown node {state.current_node}"
                )
                raise NodeNotFoundError(state.current_node, state)

            logger.debug(f"Run {state.run_id} entering node {node.id}")
            await self.events.dispatch(
                WorkflowEvent.NODE_ENTERED,
                workflow_id=definition.id,
                run_id=state.run_id,
                node_id=node.id,
                state=state,
            )
            started = time.perf_counter()
            try:
                result = await node.execute(input, state)
            except Exception as e:
                duration = time.perf_counter() - started
                logger.exception(f"Node {node.id} raised during run {state.run_id}")
                state = state.record_node_execution(node.id, input, {}, duration, str(e)).fail()
                return WorkflowResult.failed_with(state, str(e))
            duration = time.perf_counter() - started

            state = state.record_node_execution(
                node.id,
                input,
                result.output,
                duration,
                None if result.success else (result.error or "Unknown error"),
            )
            logger.debug(
                f"Run {state.run_id} exited node {node.id} success={result.success} "
                f"pause={result.should_pause} in {duration:.3f}s"
            )
            await self.events.dispatch(
                WorkflowEvent.NODE_EXITED,
                workflow_id=definition.id,
                run_id=state.run_id,
                node_id=node.id,
                state=state,
                output=result.output,
            )

            if result.should_pause:
                reason = result.pause_reason or "Paused"
                state = state.merge(result.output).pause(reason)
                logger.info(
                    f"Workflow {definition.id} paused run_id={state.run_id} at node={node.id}: {reason}"
                )
                return WorkflowResult.paused_with(state, reason)

            if not result.success:
                state = state.fail()
                logger.warning(
                    f"Workflow {definition.id} failed run_id={state.run_id} at node={node.id}: {result.error}"
                )
                return WorkflowResult.failed_with(state, result.error)

            state = state.merge(result.output)
            input = {**input, **result.output}
            try:
                next_node = await self._next_node(definition, node, result, input, state)
            except Exception as e:
                logger.exception(f"Edge evaluation after node {node.id} raised during run {state.run_id}")
                state = state.fail()
                return WorkflowResult.failed_with(state, f"Edge evaluation failed: {e}")
            state = state.move_to(next_node)
            if next_node is None:
                return self._complete(definition, state)
            state = state.running()

    def _complete(self, definition: WorkflowDefinition, state: WorkflowState) -> WorkflowResult:
        state = state.complete()
        logger.info(f"Workflow {definition.id} completed run_id={state.run_id}")
        return WorkflowResult.completed_with(state)

    async def _next_node(
        self,
        definition: WorkflowDefinition,
        node: Node,
        result: NodeResult,
        input: Dict[str, Any],
        state: WorkflowState,
    ) -> Optional[str]:
        if result.next_node is not None:
            return result.next_node
        if result.output.get(NEXT_NODE_KEY) is not None:
            return result.output[NEXT_NODE_KEY]
        if definition.exit_points and definition.is_exit_point(node.id):
            return None
        return await definition.next_node(node.id, input, state)
