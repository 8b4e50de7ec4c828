from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from ..models import NodeResult, WorkflowState
from ..utils.callables import call_maybe_async
from .base import Node
from .callback import to_node_result

logger = logging.getLogger(__name__)

Merger = Callable[
    [Dict[str, NodeResult], Dict[str, str]], Union[Any, Awaitable[Any]]
]


class MergeStrategy(str, Enum):
    ALL = "all"
    ANY = "any"
    CUSTOM = "custom"


class ParallelNode(Node):
    """Run a fixed set of child nodes and merge their outcomes.

    Results are always keyed by child node id. Children run one after the
    other unless ``concurrent`` is set, in which case they are gathered on
    the event loop. A child that requests a pause turns the whole node into
    a pause carrying the results collected so far.
    """

    def __init__(
        self,
        node_id: str,
        nodes: Sequence[Node],
        merge_strategy: Union[MergeStrategy, str] = MergeStrategy.ALL,
        merger: Optional[Merger] = None,
        concurrent: bool = False,
    ) -> None:
        super().__init__(node_id)
        ids = [node.id for node in nodes]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Parallel node {node_id} has duplicate child ids: {ids}")
        self.nodes: List[Node] = list(nodes)
        self.merge_strategy = MergeStrategy(merge_strategy)
        self._merger = merger
        self.concurrent = concurrent

    async def execute(self, input: Dict[str, Any], state: WorkflowState) -> NodeResult:
        if self.concurrent:
            return await self._execute_concurrently(input, state)

        results: Dict[str, NodeResult] = {}
        errors: Dict[str, str] = {}
        for node in self.nodes:
            try:
                result = await node.execute(input, state)
            except Exception as e:
                errors[node.id] = str(e)
                continue
            results[node.id] = result
            if result.should_pause:
                return self._pause(node.id, result, results)
            if not result.success:
                errors[node.id] = result.error or "Unknown error"

        return await self._merge(results, errors)

    async def _execute_concurrently(
        self, input: Dict[str, Any], state: WorkflowState
    ) -> NodeResult:
        outcomes = await asyncio.gather(
            *(node.execute(input, state) for node in self.nodes),
            return_exceptions=True,
        )
        results: Dict[str, NodeResult] = {}
        errors: Dict[str, str] = {}
        paused: Optional[str] = None
        for node, outcome in zip(self.nodes, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                errors[node.id] = str(outcome)
                continue
            results[node.id] = outcome
            if outcome.should_pause and paused is None:
                paused = node.id
            elif not outcome.success:
                errors[node.id] = outcome.error or "Unknown error"

        if paused is not None:
            return self._pause(paused, results[paused], results)
        return await self._merge(results, errors)

    def _pause(
        self, child_id: str, result: NodeResult, results: Dict[str, NodeResult]
    ) -> NodeResult:
        logger.info(f"Parallel node {self.id} paused by child {child_id}")
        return NodeResult.pause(
            f"Parallel node {child_id} requested pause: {result.pause_reason}",
            {
                "partial_results": {
                    node_id: r.output for node_id, r in results.items()
                }
            },
        )

    async def _merge(
        self, results: Dict[str, NodeResult], errors: Dict[str, str]
    ) -> NodeResult:
        if self.merge_strategy is MergeStrategy.ANY:
            return self._merge_any(results, errors)
        if self.merge_strategy is MergeStrategy.CUSTOM and self._merger is not None:
            value = await call_maybe_async(self._merger, results, errors)
            return to_node_result(value)
        return self._merge_all(results, errors)

    def _merge_all(
        self, results: Dict[str, NodeResult], errors: Dict[str, str]
    ) -> NodeResult:
        if errors:
            return NodeResult.failure(
                f"Not all parallel nodes succeeded: {json.dumps(errors)}"
            )
        return NodeResult.ok({node_id: r.output for node_id, r in results.items()})

    def _merge_any(
        self, results: Dict[str, NodeResult], errors: Dict[str, str]
    ) -> NodeResult:
        successful = {node_id: r for node_id, r in results.items() if r.success}
        if not successful:
            return NodeResult.failure(
                f"No parallel nodes succeeded: {json.dumps(errors)}"
            )
        return NodeResult.ok({node_id: r.output for node_id, r in successful.items()})
