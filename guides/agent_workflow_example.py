"""Chain a pydantic-ai agent with tools inside a workflow."""

import asyncio

from pydantic_ai import Agent
from pydantic_ai.models.test import TestModel

from waypoint import AgentDependencies, FunctionTool, Workflow


def search_docs(query: str) -> dict:
    """Pretend search over internal documentation."""
    return {"hits": [f"{query} overview", f"{query} troubleshooting"]}


# Swap TestModel for a real model, e.g. Agent("openai:gpt-4o", ...)
summarizer = Agent(
    TestModel(custom_output_text="Two pages cover this topic."),
    deps_type=AgentDependencies,
    system_prompt="Summarize search hits in one sentence.",
)


def build_workflow() -> Workflow:
    workflow = Workflow("research")
    workflow.tools.register("search", FunctionTool("search", search_docs))
    workflow.agents.register("summarizer", summarizer)
    return (
        workflow.tool("search", "search", {"query": "$input.topic"})
        .agent("summarize", "summarizer", input_mapping={"message": "$state.hits"}, output_key="summary")
        .then("search", "summarize")
    )


async def main() -> None:
    result = await build_workflow().run({"topic": "deployments"})
    print(f"🔎 hits: {result.get('hits')}")
    print(f"📝 summary: {result.get('summary')}")


if __name__ == "__main__":
    asyncio.run(main())
