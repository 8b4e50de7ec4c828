"""Node variants available to workflow definitions."""

from .agent import AgentNode
from .base import Node
from .callback import CallbackNode
from .condition import ConditionNode
from .human_input import HumanInputNode
from .loop import LoopNode
from .parallel import MergeStrategy, ParallelNode
from .sub_workflow import SubWorkflowNode
from .tool import ToolNode

__all__ = [
    "Node",
    "AgentNode",
    "CallbackNode",
    "ConditionNode",
    "HumanInputNode",
    "LoopNode",
    "MergeStrategy",
    "ParallelNode",
    "SubWorkflowNode",
    "ToolNode",
]
