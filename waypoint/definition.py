"""Workflow graph definitions and the fluent ``Workflow`` builder."""

from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Union,
)

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .contracts import Agent, RunnableWorkflow, Tool
from .exceptions import WorkflowDefinitionError
from .mapping import InputMapping
from .models import WorkflowContext, WorkflowResult, WorkflowState
from .nodes import (
    AgentNode,
    CallbackNode,
    ConditionNode,
    HumanInputNode,
    LoopNode,
    MergeStrategy,
    Node,
    ParallelNode,
    SubWorkflowNode,
    ToolNode,
)
from .nodes.callback import Callback
from .nodes.condition import Predicate
from .nodes.human_input import InputSchema
from .nodes.loop import LoopCondition
from .nodes.parallel import Merger
from .registry import AgentRegistry, Registry, ToolRegistry, WorkflowRegistry
from .utils.callables import call_maybe_async

if TYPE_CHECKING:
    from .executor import WorkflowExecutor

EdgeCondition = Callable[[Dict[str, Any], WorkflowState], Union[bool, Awaitable[bool]]]


class Edge(BaseModel):
    """Directed transition between two nodes.

    Outgoing edges are tried by descending ``priority``; the first one whose
    ``condition`` is absent or true is followed.
    """

    model_config = ConfigDict(frozen=True)

    source: str
    target: str
    condition: Optional[EdgeCondition] = None
    priority: int = 0


class WorkflowDefinition(BaseModel):
    """Immutable description of a workflow graph.

    Dangling edges and an unknown entry node are rejected on construction.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str
    name: str = ""
    description: str = ""
    nodes: Dict[str, Node]
    edges: List[Edge] = Field(default_factory=list)
    entry_node: Optional[str] = None
    exit_points: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("nodes", mode="before")
    @classmethod
    def _index_nodes(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return {node.id: node for node in value}
        return value

    @model_validator(mode="after")
    def _check_graph(self) -> "WorkflowDefinition":
        for key, node in self.nodes.items():
            if key != node.id:
                raise WorkflowDefinitionError(
                    f"Node registered as '{key}' reports id '{node.id}'",
                    {"workflow_id": self.id, "node_id": key},
                )
        if self.entry_node is None or self.entry_node not in self.nodes:
            raise WorkflowDefinitionError.unknown_entry(self.id, self.entry_node)
        for edge in self.edges:
            if edge.source not in self.nodes:
                raise WorkflowDefinitionError.invalid_edge(
                    edge.source, edge.target, f"unknown source node '{edge.source}'"
                )
            if edge.target not in self.nodes:
                raise WorkflowDefinitionError.invalid_edge(
                    edge.source, edge.target, f"unknown target node '{edge.target}'"
                )
        for exit_point in self.exit_points:
            if exit_point not in self.nodes:
                raise WorkflowDefinitionError(
                    f"Exit point '{exit_point}' is not a node of workflow '{self.id}'",
                    {"workflow_id": self.id, "node_id": exit_point},
                )
        return self

    def get_node(self, node_id: str) -> Optional[Node]:
        return self.nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def edges_from(self, node_id: str) -> List[Edge]:
        """Outgoing edges of ``node_id``, highest priority first."""
        edges = [edge for edge in self.edges if edge.source == node_id]
        return sorted(edges, key=lambda edge: -edge.priority)

    def is_exit_point(self, node_id: str) -> bool:
        if not self.exit_points:
            return not self.edges_from(node_id)
        return node_id in self.exit_points

    async def next_node(
        self, from_id: str, input: Dict[str, Any], state: WorkflowState
    ) -> Optional[str]:
        """Target of the first outgoing edge that matches, or ``None``."""
        for edge in self.edges_from(from_id):
            if edge.condition is None or await call_maybe_async(edge.condition, input, state):
                return edge.target
        return None


class Workflow:
    """Fluent builder for workflow graphs.

    Example::

        workflow = (
            Workflow("review")
            .callback("draft", write_draft)
            .human_input("approve", "Approve the draft?")
            .then("draft", "approve")
        )
        result = await workflow.run({"topic": "release notes"})

    The first node added becomes the entry node unless :meth:`entry` says
    otherwise. Tools, agents and sub-workflows referenced by name are
    resolved from the registries given to the constructor.
    """

    def __init__(
        self,
        id: str,
        tools: Optional[Registry] = None,
        agents: Optional[Registry] = None,
        workflows: Optional[Registry] = None,
    ) -> None:
        self.id = id
        self.name = id
        self.description = ""
        self._nodes: Dict[str, Node] = {}
        self._edges: Dict[str, Edge] = {}
        self._entry_node: Optional[str] = None
        self._executor: Optional["WorkflowExecutor"] = None
        self._metadata: Dict[str, Any] = {}
        self.tools = tools if tools is not None else ToolRegistry()
        self.agents = agents if agents is not None else AgentRegistry()
        self.workflows = workflows if workflows is not None else WorkflowRegistry()

    @classmethod
    def make(cls, id: str, **kwargs: Any) -> "Workflow":
        return cls(id, **kwargs)

    def with_name(self, name: str) -> "Workflow":
        self.name = name
        return self

    def with_description(self, description: str) -> "Workflow":
        self.description = description
        return self

    def with_metadata(self, metadata: Dict[str, Any]) -> "Workflow":
        self._metadata.update(metadata)
        return self

    def executor(self, executor: "WorkflowExecutor") -> "Workflow":
        self._executor = executor
        return self

    # ------------------------------------------------------------------
    # Nodes
    def add_node(self, node: Node) -> "Workflow":
        self._nodes[node.id] = node
        if self._entry_node is None:
            self._entry_node = node.id
        return self

    def callback(self, node_id: str, callback: Callback) -> "Workflow":
        return self.add_node(CallbackNode(node_id, callback))

    def condition(
        self,
        node_id: str,
        condition: Predicate,
        branches: Optional[Dict[str, Optional[str]]] = None,
    ) -> "Workflow":
        return self.add_node(ConditionNode(node_id, condition, branches))

    def agent(
        self,
        node_id: str,
        agent: Union[Agent, str],
        input_key: Optional[str] = None,
        output_key: Optional[str] = None,
        input_mapping: Optional[InputMapping] = None,
    ) -> "Workflow":
        return self.add_node(
            AgentNode(
                node_id,
                agent,
                input_key=input_key,
                output_key=output_key,
                input_mapping=input_mapping,
                registry=self.agents,
            )
        )

    def tool(
        self,
        node_id: str,
        tool: Union[Tool, str],
        input_mapping: Optional[InputMapping] = None,
        output_key: Optional[str] = None,
    ) -> "Workflow":
        return self.add_node(
            ToolNode(node_id, tool, input_mapping, output_key, registry=self.tools)
        )

    def loop(
        self,
        node_id: str,
        body: Node,
        condition: LoopCondition,
        max_iterations: int = 100,
    ) -> "Workflow":
        return self.add_node(LoopNode(node_id, body, condition, max_iterations))

    def parallel(
        self,
        node_id: str,
        nodes: Sequence[Node],
        merge_strategy: Union[MergeStrategy, str] = MergeStrategy.ALL,
        merger: Optional[Merger] = None,
        concurrent: bool = False,
    ) -> "Workflow":
        return self.add_node(
            ParallelNode(node_id, nodes, merge_strategy, merger, concurrent=concurrent)
        )

    def human_input(
        self,
        node_id: str,
        prompt: str,
        input_schema: Optional[InputSchema] = None,
        timeout: Optional[int] = None,
    ) -> "Workflow":
        return self.add_node(HumanInputNode(node_id, prompt, input_schema, timeout))

    def sub_workflow(
        self,
        node_id: str,
        workflow: Union[RunnableWorkflow, str],
        input_mapping: Optional[InputMapping] = None,
        output_key: Optional[str] = None,
    ) -> "Workflow":
        return self.add_node(
            SubWorkflowNode(
                node_id, workflow, input_mapping, output_key, registry=self.workflows
            )
        )

    # ------------------------------------------------------------------
    # Edges
    def entry(self, node_id: str) -> "Workflow":
        self._entry_node = node_id
        return self

    def edge(
        self,
        source: str,
        target: str,
        condition: Optional[EdgeCondition] = None,
        priority: int = 0,
    ) -> "Workflow":
        self._edges[f"{source}->{target}"] = Edge(
            source=source, target=target, condition=condition, priority=priority
        )
        return self

    def then(self, source: str, target: str) -> "Workflow":
        return self.edge(source, target)

    # ------------------------------------------------------------------
    def get_node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def definition(self) -> WorkflowDefinition:
        return WorkflowDefinition(
            id=self.id,
            name=self.name,
            description=self.description,
            nodes=dict(self._nodes),
            edges=list(self._edges.values()),
            entry_node=self._entry_node,
            metadata=dict(self._metadata),
        )

    def _resolve_executor(self) -> "WorkflowExecutor":
        if self._executor is None:
            from .executor import WorkflowExecutor

            self._executor = WorkflowExecutor()
        return self._executor

    async def run(
        self,
        input: Optional[Dict[str, Any]] = None,
        context: Optional[WorkflowContext] = None,
    ) -> WorkflowResult:
        return await self._resolve_executor().execute(self, input, context)

    async def resume(
        self, state: WorkflowState, input: Optional[Dict[str, Any]] = None
    ) -> WorkflowResult:
        return await self._resolve_executor().resume(self, state, input)
