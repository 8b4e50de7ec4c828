from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from ..contracts import Tool, ToolContext, ToolResult
from ..mapping import InputMapping, resolve_input
from ..models import NodeResult, WorkflowState
from ..registry import Registry
from ..utils.callables import maybe_await
from .base import Node

logger = logging.getLogger(__name__)


class ToolNode(Node):
    """Invoke a tool with arguments resolved from an input mapping.

    ``tool`` is either a tool instance or a name looked up in ``registry``.
    """

    def __init__(
        self,
        node_id: str,
        tool: Union[Tool, str],
        input_mapping: Optional[InputMapping] = None,
        output_key: Optional[str] = None,
        registry: Optional[Registry] = None,
    ) -> None:
        super().__init__(node_id)
        if isinstance(tool, str) and registry is None:
            raise ValueError(f"Tool node {node_id} references '{tool}' without a registry")
        self.tool = tool
        self.input_mapping = input_mapping if input_mapping is not None else {}
        self.output_key = output_key
        self._registry = registry

    def resolve_tool(self) -> Tool:
        if isinstance(self.tool, str):
            return self._registry.get(self.tool)
        return self.tool

    async def execute(self, input: Dict[str, Any], state: WorkflowState) -> NodeResult:
        context = ToolContext(
            run_id=state.run_id,
            workflow_id=state.workflow_id,
            node_id=self.id,
            metadata=dict(state.metadata),
        )
        try:
            tool = self.resolve_tool()
            arguments = await resolve_input(self.input_mapping, input, state)
            result = await maybe_await(tool.execute(arguments, context))
        except Exception as e:
            logger.warning(f"Tool node {self.id} failed: {e}")
            return NodeResult.failure(f"Tool execution failed: {e}")

        if not isinstance(result, ToolResult):
            result = ToolResult.ok(result)
        if not result.success:
            return NodeResult.failure(result.error or "Tool execution failed")

        if self.output_key is not None:
            return NodeResult.ok({self.output_key: result.output})
        if isinstance(result.output, dict):
            return NodeResult.ok(result.output)
        return NodeResult.ok({"result": result.output})
