from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional, Union

from ..models import NodeResult, WorkflowState
from ..utils.callables import call_maybe_async
from .base import Node

Predicate = Callable[[Dict[str, Any], WorkflowState], Union[bool, Awaitable[bool]]]

NEXT_NODE_KEY = "_next_node"


class ConditionNode(Node):
    """Branch to ``branches["true"]`` or ``branches["false"]``."""

    def __init__(
        self,
        node_id: str,
        condition: Predicate,
        branches: Optional[Dict[str, Optional[str]]] = None,
    ) -> None:
        super().__init__(node_id)
        self._condition = condition
        self.branches = dict(branches or {})

    async def execute(self, input: Dict[str, Any], state: WorkflowState) -> NodeResult:
        result = bool(await call_maybe_async(self._condition, input, state))
        branch = "true" if result else "false"
        next_node = self.branches.get(branch)
        return NodeResult.ok(
            {
                NEXT_NODE_KEY: next_node,
                "condition_result": result,
                "branch": branch,
            },
            next_node=next_node,
        )
