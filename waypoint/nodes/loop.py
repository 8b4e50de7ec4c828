from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Union

from ..models import NodeResult, WorkflowState
from ..utils.callables import call_maybe_async
from .base import Node

logger = logging.getLogger(__name__)

LoopCondition = Callable[
    [Dict[str, Any], WorkflowState, int], Union[bool, Awaitable[bool]]
]


class LoopNode(Node):
    """Execute ``body`` repeatedly while ``condition(input, state, iteration)`` holds.

    ``max_iterations`` is a hard cap that ends the loop normally. A body
    that pauses or fails ends the loop immediately with that outcome.
    """

    def __init__(
        self,
        node_id: str,
        body: Node,
        condition: LoopCondition,
        max_iterations: int = 100,
    ) -> None:
        super().__init__(node_id)
        if max_iterations < 0:
            raise ValueError("max_iterations must be >= 0")
        self.body = body
        self._condition = condition
        self.max_iterations = max_iterations

    async def execute(self, input: Dict[str, Any], state: WorkflowState) -> NodeResult:
        iteration = 0
        current_input = dict(input)
        outputs: List[Dict[str, Any]] = []

        while iteration < self.max_iterations:
            if not await call_maybe_async(self._condition, current_input, state, iteration):
                break

            result = await self.body.execute(current_input, state)
            if not result.success:
                return NodeResult.failure(
                    f"Loop iteration {iteration} failed: {result.error}"
                )
            if result.should_pause:
                return result

            outputs.append(result.output)
            current_input = {**current_input, **result.output}
            state = state.merge(result.output)
            iteration += 1
        else:
            if self.max_iterations:
                logger.info(
                    f"Loop node {self.id} stopped at max_iterations={self.max_iterations}"
                )

        return NodeResult.ok(
            {
                "iterations": iteration,
                "outputs": outputs,
                "final_output": current_input,
            }
        )
