"""Fan out to several checks and merge their results."""

import asyncio

from waypoint import CallbackNode, MergeStrategy, Workflow, WorkflowExecutor


async def check_inventory(input, state):
    await asyncio.sleep(0.1)
    return {"in_stock": True}


async def check_fraud(input, state):
    await asyncio.sleep(0.1)
    return {"score": 0.02}


def check_address(input, state):
    return {"valid": bool(input.get("address"))}


def build_workflow() -> Workflow:
    return (
        Workflow("order-checks")
        .parallel(
            "checks",
            [
                CallbackNode("inventory", check_inventory),
                CallbackNode("fraud", check_fraud),
                CallbackNode("address", check_address),
            ],
            MergeStrategy.ALL,
            concurrent=True,
        )
        .callback(
            "decide",
            lambda input, state: {
                "accepted": input["inventory"]["in_stock"] and input["fraud"]["score"] < 0.5
            },
        )
        .then("checks", "decide")
    )


async def main() -> None:
    result = await WorkflowExecutor().execute(build_workflow(), {"address": "1 Main St"})
    print(f"📦 accepted={result.get('accepted')} status={result.state.status.value}")


if __name__ == "__main__":
    asyncio.run(main())
