"""Simple agent example.

This example demonstrates the autonomous agent loop:
- Custom tools declared with @tool next to the built-in workspace tools
- One-shot execution with AutoAgent.run()
- The same agent as a pipeline token
"""

import asyncio

from stepflow import PipelineState, Settings, compile_and_run
from stepflow.agents import AutoAgent, default_tools, tool
from stepflow.providers import OpenAIChat


@tool
async def calculate(expression: str) -> str:
    """Evaluate a mathematical expression.

    Args:
        expression: A Python expression to evaluate (e.g., "15 * 234")
    """
    try:
        result = eval(expression, {"__builtins__": {}}, {})
        return str(result)
    except Exception as e:
        return f"Error: {e}"


async def example_one_shot(llm):
    print("=" * 60)
    print("Example 1: AutoAgent.run()")
    print("=" * 60)

    tools = default_tools()
    tools.register(calculate)
    agent = AutoAgent(llm, tools, max_iterations=5, trace=True)

    result = await agent.run("What is 15 * 234? Use the calculate tool.")
    print(f"Status: {result.status.value}")
    print(f"Summary: {result.summary}")
    print(f"Actions:\n{result.action_log}\n")


async def example_pipeline(llm):
    print("=" * 60)
    print("Example 2: AutoAgent token")
    print("=" * 60)

    state = PipelineState(llm=llm)
    await compile_and_run("AutoAgent('List the files in the current directory;maxIter=4')", state)
    print(state.output)


async def main():
    llm = OpenAIChat.from_settings(Settings.from_env())
    await example_one_shot(llm)
    await example_pipeline(llm)


if __name__ == "__main__":
    asyncio.run(main())
