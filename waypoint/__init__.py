"""waypoint: graph-based workflow orchestration with durable pause and resume."""

from .contracts import AgentDependencies, FunctionTool, ToolContext, ToolResult
from .definition import Edge, Workflow, WorkflowDefinition
from .exceptions import (
    InvalidWorkflowStateError,
    MaxStepsExceededError,
    NodeNotFoundError,
    RegistryLookupError,
    WaypointError,
    WorkflowDefinitionError,
    WorkflowExecutionError,
    WorkflowNotFoundException,
    WorkflowNotPausedException,
)
from .events import EventDispatcher, WorkflowEvent
from .executor import WorkflowExecutor
from .models import (
    NodeResult,
    WorkflowContext,
    WorkflowResult,
    WorkflowState,
    WorkflowStatus,
)
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
from .persistence import get_repository
from .persistent import PersistentWorkflowExecutor
from .registry import AgentRegistry, ToolRegistry, WorkflowRegistry

__version__ = "0.1.0"
__all__ = [
    "AgentDependencies",
    "AgentNode",
    "AgentRegistry",
    "CallbackNode",
    "ConditionNode",
    "Edge",
    "EventDispatcher",
    "FunctionTool",
    "HumanInputNode",
    "InvalidWorkflowStateError",
    "LoopNode",
    "MaxStepsExceededError",
    "MergeStrategy",
    "Node",
    "NodeNotFoundError",
    "NodeResult",
    "ParallelNode",
    "PersistentWorkflowExecutor",
    "RegistryLookupError",
    "SubWorkflowNode",
    "ToolContext",
    "ToolNode",
    "ToolRegistry",
    "ToolResult",
    "WaypointError",
    "Workflow",
    "WorkflowContext",
    "WorkflowDefinition",
    "WorkflowDefinitionError",
    "WorkflowEvent",
    "WorkflowExecutionError",
    "WorkflowExecutor",
    "WorkflowNotFoundException",
    "WorkflowNotPausedException",
    "WorkflowRegistry",
    "WorkflowResult",
    "WorkflowState",
    "WorkflowStatus",
    "get_repository",
]
