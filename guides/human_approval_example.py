"""Pause a run for human approval and resume it from another process."""

import asyncio
import sys

from waypoint import PersistentWorkflowExecutor, Workflow, WorkflowContext
from waypoint.persistence import get_repository


def build_workflow() -> Workflow:
    return (
        Workflow("expense-approval")
        .with_description("Book expenses, asking a human above a threshold")
        .callback("submit", lambda input, state: {"amount": input["amount"]})
        .condition(
            "needs_approval",
            lambda input, state: input["amount"] > 100,
            {"true": "approve", "false": "book"},
        )
        .human_input(
            "approve",
            "Approve this expense?",
            {"type": "string", "enum": ["yes", "no"]},
            timeout=3600,
        )
        .callback(
            "book",
            lambda input, state: {"booked": input.get("human_input", "yes") == "yes"},
        )
        .then("submit", "needs_approval")
        .then("approve", "book")
    )


async def start(amount: int) -> None:
    executor = PersistentWorkflowExecutor(repository=get_repository("sqlite://expenses.db"))
    result = await executor.execute(
        build_workflow(), {"amount": amount}, WorkflowContext(run_id=f"expense-{amount}")
    )
    if result.is_paused:
        print(f"⏸️  {result.run_id} waiting: {result.pause_reason}")
        print(f"   Resume with: python {sys.argv[0]} resume {result.run_id} yes")
    else:
        print(f"✅ {result.run_id} booked={result.get('booked')}")


async def resume(run_id: str, answer: str) -> None:
    executor = PersistentWorkflowExecutor(repository=get_repository("sqlite://expenses.db"))
    result = await executor.resume_by_run_id(build_workflow(), run_id, {"human_input": answer})
    print(f"✅ {run_id}: {result.state.status.value} booked={result.get('booked')}")


if __name__ == "__main__":
    if len(sys.argv) >= 4 and sys.argv[1] == "resume":
        asyncio.run(resume(sys.argv[2], sys.argv[3]))
    else:
        asyncio.run(start(int(sys.argv[1]) if len(sys.argv) > 1 else 250))
