from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from ..contracts import RunnableWorkflow
from ..mapping import InputMapping, resolve_input
from ..models import NodeResult, WorkflowContext, WorkflowResult, WorkflowState, WorkflowStatus
from ..registry import Registry
from .base import Node

logger = logging.getLogger(__name__)

SUB_STATE_KEY = "sub_workflow_state"
SUB_NODE_KEY = "sub_workflow_node"


class SubWorkflowNode(Node):
    """Run another workflow as a single step of this one.

    Failure and pause of the child propagate to the parent. A paused child's
    state is stored in the parent's data under ``sub_workflow_state`` so that
    resuming the parent resumes the child where it stopped.
    """

    def __init__(
        self,
        node_id: str,
        workflow: Union[RunnableWorkflow, str],
        input_mapping: Optional[InputMapping] = None,
        output_key: Optional[str] = None,
        registry: Optional[Registry] = None,
    ) -> None:
        super().__init__(node_id)
        if isinstance(workflow, str) and registry is None:
            raise ValueError(
                f"Sub-workflow node {node_id} references '{workflow}' without a registry"
            )
        self.workflow = workflow
        self.input_mapping = input_mapping if input_mapping is not None else {}
        self.output_key = output_key
        self._registry = registry

    def resolve_workflow(self) -> RunnableWorkflow:
        if isinstance(self.workflow, str):
            return self._registry.get(self.workflow)
        return self.workflow

    def _paused_child(self, state: WorkflowState) -> Optional[WorkflowState]:
        raw = state.get(SUB_STATE_KEY)
        if not raw or state.get(SUB_NODE_KEY) != self.id:
            return None
        child = raw if isinstance(raw, WorkflowState) else WorkflowState.model_validate(raw)
        if child.status is not WorkflowStatus.PAUSED:
            return None
        return child

    async def execute(self, input: Dict[str, Any], state: WorkflowState) -> NodeResult:
        try:
            workflow = self.resolve_workflow()
            child = self._paused_child(state)
            if child is not None:
                logger.info(f"Resuming sub-workflow run {child.run_id} from node {self.id}")
                result = await workflow.resume(child, input)
            else:
                workflow_input = await resolve_input(self.input_mapping, input, state)
                context = WorkflowContext(
                    run_id=f"{state.run_id}:{self.id}",
                    correlation_id=state.run_id,
                    metadata={
                        "parent_workflow": state.workflow_id,
                        "parent_node": self.id,
                    },
                )
                result = await workflow.run(workflow_input, context)
        except Exception as e:
            logger.warning(f"Sub-workflow node {self.id} failed: {e}")
            return NodeResult.failure(f"Sub-workflow failed: {e}")

        return self._translate(result, resumed=child is not None)

    def _translate(self, result: WorkflowResult, resumed: bool) -> NodeResult:
        if result.is_paused:
            return NodeResult.pause(
                f"Sub-workflow paused: {result.pause_reason}",
                {SUB_STATE_KEY: result.state.to_jsonable(), SUB_NODE_KEY: self.id},
            )
        if not result.is_completed:
            return NodeResult.failure(f"Sub-workflow failed: {result.error or 'unknown error'}")

        output: Dict[str, Any] = dict(result.output)
        if self.output_key is not None:
            output = {self.output_key: output}
        if resumed:
            output[SUB_STATE_KEY] = None
        return NodeResult.ok(output)
