from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Union

from ..models import NodeResult, WorkflowState
from ..utils.callables import call_maybe_async
from .base import Node

logger = logging.getLogger(__name__)

Callback = Callable[[Dict[str, Any], WorkflowState], Union[Any, Awaitable[Any]]]


def to_node_result(value: Any) -> NodeResult:
    """Normalise a callable's return value into a :class:`NodeResult`."""
    if isinstance(value, NodeResult):
        return value
    if isinstance(value, dict):
        return NodeResult.ok(value)
    return NodeResult.ok({"result": value})


class CallbackNode(Node):
    """Run an arbitrary function ``fn(input, state)``.

    The function may return a :class:`NodeResult`, a dict used as the
    output, or any other value which is stored under ``result``.
    """

    def __init__(self, node_id: str, callback: Callback) -> None:
        super().__init__(node_id)
        self._callback = callback

    async def execute(self, input: Dict[str, Any], state: WorkflowState) -> NodeResult:
        try:
            value = await call_maybe_async(self._callback, input, state)
        except Exception as e:
            logger.warning(f"Callback node {self.id} raised: {e}")
            return NodeResult.failure(f"Callback failed: {e}")
        return to_node_result(value)
