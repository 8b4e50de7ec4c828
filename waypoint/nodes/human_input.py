from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type, Union

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError
from pydantic import BaseModel, ValidationError

from ..models import NodeResult, WorkflowState
from .base import Node

logger = logging.getLogger(__name__)

HUMAN_INPUT_KEY = "human_input"

InputSchema = Union[Dict[str, Any], Type[BaseModel]]


class HumanInputNode(Node):
    """Pause the run until a human supplies ``human_input``.

    On first entry the node pauses with a payload describing what is
    expected. When the run is resumed with ``{"human_input": ...}`` the
    value is validated against ``input_schema`` (a JSON-schema dict or a
    pydantic model class) if one was given. ``timeout`` is informational;
    the engine never enforces it.

    The resume value stays in the run's input for the rest of the segment,
    so a second human input node reached later in the same segment accepts
    it instead of pausing. Put another node that clears ``human_input``
    (for example a callback returning ``{"human_input": None}``) between
    two approvals.
    """

    def __init__(
        self,
        node_id: str,
        prompt: str,
        input_schema: Optional[InputSchema] = None,
        timeout: Optional[int] = None,
    ) -> None:
        super().__init__(node_id)
        self.prompt = prompt
        self.input_schema = input_schema
        self.timeout = timeout
        if isinstance(input_schema, dict):
            Draft202012Validator.check_schema(input_schema)

    def json_schema(self) -> Optional[Dict[str, Any]]:
        if self.input_schema is None:
            return None
        if isinstance(self.input_schema, dict):
            return self.input_schema
        return self.input_schema.model_json_schema()

    async def execute(self, input: Dict[str, Any], state: WorkflowState) -> NodeResult:
        if input.get(HUMAN_INPUT_KEY) is not None:
            value = input[HUMAN_INPUT_KEY]
            errors = self.validate(value)
            if errors:
                return NodeResult.failure("Invalid human input: " + ", ".join(errors))
            return NodeResult.ok({HUMAN_INPUT_KEY: value, "awaiting_input": False})

        logger.info(f"Human input node {self.id} awaiting input for run {state.run_id}")
        return NodeResult.pause(
            self.prompt,
            {
                "awaiting_input": True,
                "prompt": self.prompt,
                "schema": self.json_schema(),
                "timeout": self.timeout,
            },
        )

    def validate(self, value: Any) -> List[str]:
        """Return validation error messages for ``value`` (empty when valid)."""
        if self.input_schema is None:
            return []
        if isinstance(self.input_schema, dict):
            try:
                validator = Draft202012Validator(self.input_schema)
            except SchemaError as exc:  # pragma: no cover - checked in __init__
                return [f"invalid schema: {exc.message}"]
            found = sorted(
                validator.iter_errors(value), key=lambda e: [str(p) for p in e.path]
            )
            return [e.message for e in found]
        try:
            self.input_schema.model_validate(value)
        except ValidationError as exc:
            return [err["msg"] for err in exc.errors()]
        return []
