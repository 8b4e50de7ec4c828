"""Collaborator contracts for tool, agent and sub-workflow nodes."""

from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    runtime_checkable,
)

from pydantic import BaseModel, Field

from .utils.callables import call_maybe_async

if TYPE_CHECKING:
    from .models import WorkflowContext, WorkflowResult, WorkflowState


class ToolContext(BaseModel):
    """Context handed to a tool when it runs inside a workflow."""

    run_id: str
    workflow_id: str
    node_id: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Structured tool outcome."""

    success: bool = True
    output: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, output: Any) -> "ToolResult":
        return cls(output=output)

    @classmethod
    def failure(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)


@runtime_checkable
class Tool(Protocol):
    """Anything with an ``execute(arguments, context)`` method.

    ``execute`` may be sync or async and may return a :class:`ToolResult`
    or a bare value, which is treated as a successful output.
    """

    name: str

    def execute(self, arguments: Dict[str, Any], context: ToolContext) -> Any:
        ...


class FunctionTool:
    """Adapt a plain function into a :class:`Tool`.

    The function is called with the resolved arguments as keyword
    arguments; pass ``takes_context=True`` to also receive the
    :class:`ToolContext` as ``context``.
    """

    def __init__(
        self,
        name: str,
        fn: Callable[..., Any],
        description: str = "",
        takes_context: bool = False,
    ) -> None:
        self.name = name
        self.description = description or (fn.__doc__ or "").strip()
        self._fn = fn
        self._takes_context = takes_context

    async def execute(self, arguments: Dict[str, Any], context: ToolContext) -> Any:
        if self._takes_context:
            return await call_maybe_async(self._fn, context=context, **arguments)
        return await call_maybe_async(self._fn, **arguments)


class AgentDependencies(BaseModel):
    """Dependencies passed to an agent run started by an ``AgentNode``."""

    run_id: str
    workflow_id: str
    node_id: str
    conversation_history: List[Dict[str, Any]] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Agent(Protocol):
    """Structural contract matching ``pydantic_ai.Agent.run``."""

    async def run(self, user_prompt: str, *, deps: Any = None) -> Any:
        ...


class RunnableWorkflow(Protocol):
    """Contract for workflows used as sub-workflows."""

    id: str

    async def run(
        self,
        input: Optional[Dict[str, Any]] = None,
        context: Optional["WorkflowContext"] = None,
    ) -> "WorkflowResult":
        ...

    async def resume(
        self, state: "WorkflowState", input: Optional[Dict[str, Any]] = None
    ) -> "WorkflowResult":
        ...
