"""Base node interface for waypoint workflows."""

from __future__ import annotations

import abc
from typing import Any, Dict

from ..models import NodeResult, WorkflowState


class Node(metaclass=abc.ABCMeta):
    """A single unit of graph-scheduled work."""

    def __init__(self, node_id: str) -> None:
        if not node_id:
            raise ValueError("node_id must be a non-empty string")
        self.id = node_id

    @abc.abstractmethod
    async def execute(self, input: Dict[str, Any], state: WorkflowState) -> NodeResult:
        """Run the node against ``input`` and the current run ``state``."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"
