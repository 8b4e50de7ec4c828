from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Union

from ..contracts import Agent, AgentDependencies
from ..mapping import InputMapping, resolve_input
from ..models import NodeResult, WorkflowState
from ..registry import Registry
from .base import Node

logger = logging.getLogger(__name__)

CONVERSATION_HISTORY_KEY = "conversation_history"


def _usage_of(result: Any) -> Dict[str, Any]:
    usage = getattr(result, "usage", None)
    if callable(usage):
        usage = usage()
    if usage is None:
        return {}
    input_tokens = getattr(usage, "input_tokens", None)
    if input_tokens is None:
        input_tokens = getattr(usage, "request_tokens", None)
    output_tokens = getattr(usage, "output_tokens", None)
    if output_tokens is None:
        output_tokens = getattr(usage, "response_tokens", None)
    return {"input_tokens": input_tokens, "output_tokens": output_tokens}


class AgentNode(Node):
    """Run a language-model agent (e.g. a ``pydantic_ai.Agent``).

    The prompt comes from ``input_key`` in the run data when set, otherwise
    from ``input_mapping``, otherwise from ``input["message"]`` or the JSON
    encoded input.
    """

    def __init__(
        self,
        node_id: str,
        agent: Union[Agent, str],
        input_key: Optional[str] = None,
        output_key: Optional[str] = None,
        input_mapping: Optional[InputMapping] = None,
        registry: Optional[Registry] = None,
    ) -> None:
        super().__init__(node_id)
        if isinstance(agent, str) and registry is None:
            raise ValueError(f"Agent node {node_id} references '{agent}' without a registry")
        self.agent = agent
        self.input_key = input_key
        self.output_key = output_key
        self.input_mapping = input_mapping
        self._registry = registry

    def resolve_agent(self) -> Agent:
        if isinstance(self.agent, str):
            return self._registry.get(self.agent)
        return self.agent

    async def build_prompt(self, input: Dict[str, Any], state: WorkflowState) -> str:
        if self.input_key is not None:
            value = state.get(self.input_key, "")
        elif self.input_mapping:
            resolved = await resolve_input(self.input_mapping, input, state)
            value = resolved.get("message", resolved)
        else:
            value = input.get("message", input)
        if isinstance(value, str):
            return value
        return json.dumps(value, default=str)

    async def execute(self, input: Dict[str, Any], state: WorkflowState) -> NodeResult:
        deps = AgentDependencies(
            run_id=state.run_id,
            workflow_id=state.workflow_id,
            node_id=self.id,
            conversation_history=list(state.get(CONVERSATION_HISTORY_KEY) or []),
            metadata=dict(state.metadata),
        )
        try:
            agent = self.resolve_agent()
            prompt = await self.build_prompt(input, state)
            result = await agent.run(prompt, deps=deps)
        except Exception as e:
            logger.warning(f"Agent node {self.id} failed: {e}")
            return NodeResult.failure(f"Agent execution failed: {e}")

        content = result.output if hasattr(result, "output") else result
        if self.output_key is not None:
            return NodeResult.ok({self.output_key: content})
        return NodeResult.ok({"content": content, "usage": _usage_of(result)})
