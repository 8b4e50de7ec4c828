"""Input mapping for tool, agent and sub-workflow nodes.

Static mappings support a fixed prefix convention and nothing else:

* ``"$state.<key>"`` reads ``state.data[<key>]``
* ``"$input.<key>"`` reads ``input[<key>]``
* any other value is passed through literally

There are no nested paths, arithmetic or interpolation.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Mapping, Union

from .models import WorkflowState
from .utils.callables import maybe_await

STATE_PREFIX = "$state."
INPUT_PREFIX = "$input."

MappingFunction = Callable[
    [Dict[str, Any], WorkflowState],
    Union[Dict[str, Any], Awaitable[Dict[str, Any]]],
]
InputMapping = Union[Mapping[str, Any], MappingFunction]


def resolve_value(value: Any, input: Mapping[str, Any], state: WorkflowState) -> Any:
    if isinstance(value, str):
        if value.startswith(STATE_PREFIX):
            return state.get(value[len(STATE_PREFIX):])
        if value.startswith(INPUT_PREFIX):
            return input.get(value[len(INPUT_PREFIX):])
    return value


def resolve_mapping(
    mapping: Mapping[str, Any], input: Mapping[str, Any], state: WorkflowState
) -> Dict[str, Any]:
    """Resolve a static mapping against ``input`` and ``state``."""
    return {key: resolve_value(value, input, state) for key, value in mapping.items()}


async def resolve_input(
    mapping: InputMapping, input: Dict[str, Any], state: WorkflowState
) -> Dict[str, Any]:
    """Resolve either a static mapping or a mapping function."""
    if callable(mapping):
        return dict(await maybe_await(mapping(input, state)) or {})
    return resolve_mapping(mapping, input, state)
