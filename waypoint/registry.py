"""Registries used to resolve node collaborators by id.

Nodes that reference a tool, agent or workflow by name receive one of these
registries at construction time and resolve the reference when they run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Generic, Iterator, TypeVar

from .exceptions import RegistryLookupError

if TYPE_CHECKING:
    from .definition import Workflow

T = TypeVar("T")


class Registry(Generic[T]):
    """Simple in-memory mapping of ids to collaborators."""

    kind = "Item"

    def __init__(self, items: Dict[str, T] | None = None) -> None:
        self._items: Dict[str, T] = dict(items or {})

    def register(self, key: str, item: T) -> None:
        """Add ``item`` under ``key``, replacing any previous entry."""
        self._items[key] = item

    def get(self, key: str) -> T:
        try:
            return self._items[key]
        except KeyError:
            raise RegistryLookupError(self.kind, key) from None

    def has(self, key: str) -> bool:
        return key in self._items

    def all(self) -> Dict[str, T]:
        return dict(self._items)

    def remove(self, key: str) -> None:
        self._items.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)


class ToolRegistry(Registry):
    kind = "Tool"


class AgentRegistry(Registry):
    kind = "Agent"


class WorkflowRegistry(Registry["Workflow"]):
    """Registry of workflows keyed by their own id."""

    kind = "Workflow"

    def add(self, workflow: "Workflow") -> None:
        self.register(workflow.id, workflow)


__all__ = ["Registry", "ToolRegistry", "AgentRegistry", "WorkflowRegistry"]
