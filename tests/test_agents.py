"""Tests for the autonomous agent, its response protocol and tools."""

import asyncio
import json

import pytest
from conftest import FakeLLM

from stepflow.agents import (
    AgentStatus,
    AutoAgent,
    Complete,
    FunctionTool,
    Think,
    ToolRegistry,
    Unknown,
    UseTool,
    default_tools,
    parse_agent_action,
    run_auto_agent,
    tool,
)
from stepflow.agents.builtin import edit_file, list_dir, make_vector_search, read_file, search_files, write_file
from stepflow.agents.prompts import FORMAT_REMINDER, NUDGE_MESSAGE
from stepflow.agents.tools import _function_to_schema
from stepflow.config import AgentLimits
from stepflow.core.runtime import compile_and_run
from stepflow.core.state import ToolExecution

COMPLETE = json.dumps({"complete": True, "summary": "all done"})


def tool_call(name, **args):
    return json.dumps({"tool": name, "args": args})


@tool
async def echo(text: str) -> str:
    """Echo text back."""
    return f"echo:{text}"


@tool(name="fail")
async def failing(reason: str = "") -> str:
    """Always fails."""
    raise RuntimeError(f"bad {reason}")


@pytest.fixture
def tools():
    return ToolRegistry([echo, failing])


# =============================================================================
# Response protocol
# =============================================================================


@pytest.mark.parametrize(
    "response, expected",
    [
        (COMPLETE, Complete("all done")),
        ('{"complete": true}', Complete("Task completed")),
        ('Sure!\n```json\n{"tool": "echo", "args": {"text": "hi"}}\n```', UseTool("echo", '{"text": "hi"}')),
        ('{"tool": "echo", "args": "hi"}', UseTool("echo", "hi")),
        ('{"tool": "think"}', UseTool("think", "")),
        ('{"thought": "planning"}', Think("planning")),
        ("Let me think about this.", Think("Let me think about this.")),
        ("{not json}", Think("{not json}")),
        ('{"unexpected": 1}', Unknown('{"unexpected": 1}')),
        ('{"tool": ""}', Unknown('{"tool": ""}')),
        ("   ", Unknown("   ")),
    ],
)
def test_parse_agent_action(response, expected):
    assert parse_agent_action(response) == expected


def test_completion_wins_over_tool_call():
    action = parse_agent_action('{"complete": true, "summary": "s", "tool": "echo"}')
    assert action == Complete("s")


# =============================================================================
# Tools
# =============================================================================


def test_function_to_schema():
    """Test function to schema conversion."""

    async def search(query: str, limit: int = 10, tags: list[str] | None = None) -> str:
        """Search for information.

        Args:
            query: What to look for
            limit: Maximum results
        """
        return f"Results for {query}"

    schema = _function_to_schema(search)

    assert schema["name"] == "search"
    assert schema["description"] == "Search for information."
    assert schema["parameters"]["properties"]["query"] == {"type": "string", "description": "What to look for"}
    assert schema["parameters"]["properties"]["limit"]["type"] == "integer"
    assert schema["parameters"]["properties"]["tags"] == {"type": "array", "items": {"type": "string"}}
    assert schema["parameters"]["required"] == ["query"]


def test_function_tool_requires_async():
    def sync_tool(x: str) -> str:
        return x

    with pytest.raises(TypeError):
        FunctionTool(sync_tool)


@pytest.mark.asyncio
async def test_function_tool_argument_forms():
    adapted = FunctionTool(echo)
    assert await adapted.invoke('{"text": "a", "extra": 1}') == "echo:a"
    assert await adapted.invoke('"quoted"') == "echo:quoted"
    assert await adapted.invoke("plain words") == "echo:plain words"


@pytest.mark.asyncio
async def test_registry_reports_errors_as_text(tools):
    assert await tools.invoke("ECHO", '{"text": "x"}') == "echo:x"
    assert await tools.invoke("fail", '{"reason": "input"}') == "Error executing fail: bad input"
    assert await tools.invoke("missing", "") == "Error: Unknown tool 'missing'. Available tools: echo, fail"


def test_registry_rejects_duplicates(tools):
    with pytest.raises(ValueError, match="Duplicate tool name"):
        tools.register(echo)


def test_tool_execution_summary():
    execution = ToolExecution.summarize("read_file", "x" * 60, "line1\nline2")
    assert execution.args_summary == "x" * 50 + "..."
    assert str(execution) == f"[read_file] {'x' * 50}... -> line1 line2"


@pytest.mark.asyncio
async def test_file_tools(tmp_path):
    target = tmp_path / "notes" / "a.txt"

    assert "Successfully wrote" in await write_file(str(target), "hello world")
    assert await read_file(str(target)) == "hello world"
    assert await edit_file(str(target), "world", "there") == f"Successfully edited {target}"
    assert target.read_text() == "hello there"
    assert (await edit_file(str(target), "absent", "x")).startswith("Error: Old text not found")
    assert (await read_file(str(tmp_path / "nope"))).startswith("Error: File not found")
    assert await list_dir(str(tmp_path)) == "notes/"


@pytest.mark.asyncio
async def test_search_files(tmp_path):
    (tmp_path / "a.py").write_text("x = 1\nNEEDLE = 2\n")
    (tmp_path / "b.txt").write_text("needle\n")

    result = await search_files("needle", str(tmp_path))

    assert result == f"{tmp_path / 'a.py'}:2: NEEDLE = 2"
    assert await search_files("absent", str(tmp_path)) == "No matches found"


@pytest.mark.asyncio
async def test_vector_search_tool(make_state):
    search = make_vector_search(make_state())
    result = await search.invoke("anything")
    assert result.startswith("[1] passage 0\n---\n")
    assert "[5] passage 4" in result


def test_default_tools():
    names = default_tools().names()
    assert names == ["read_file", "write_file", "edit_file", "list_dir", "search_files", "think"]
    assert "run_command" in default_tools(allow_commands=True)


# =============================================================================
# Agent loop
# =============================================================================


@pytest.mark.asyncio
async def test_agent_completes(tools, sink):
    result = await AutoAgent(FakeLLM(COMPLETE), tools, sink=sink).run("task")

    assert result.status is AgentStatus.COMPLETED
    assert result.completed
    assert result.summary == "all done"
    assert result.iterations == 1
    assert sink.names()[-1] == "agent.done"


@pytest.mark.asyncio
async def test_agent_runs_tools_then_completes(tools):
    llm = FakeLLM(tool_call("echo", text="hi"), tool_call("fail"), COMPLETE)

    result = await AutoAgent(llm, tools).run("task")

    assert result.status is AgentStatus.COMPLETED
    assert result.iterations == 3
    assert result.actions_taken == 2
    assert "[echo]: echo:hi" in llm.prompts[1]
    assert "[fail]: Error executing fail" in llm.prompts[2]
    assert result.action_log.splitlines()[0] == '[echo] {"text": "hi"} -> echo:hi'


@pytest.mark.asyncio
async def test_agent_budget_exhausted(tools):
    llm = FakeLLM(tool_call("echo", text="again"))

    result = await AutoAgent(llm, tools, max_iterations=3).run("task")

    assert result.status is AgentStatus.BUDGET_EXHAUSTED
    assert result.summary == "Task incomplete after 3 iterations. Actions taken: 3"
    assert llm.calls == 3


@pytest.mark.asyncio
async def test_agent_buffers_drop_oldest_entries(tools):
    calls = [tool_call("echo", text=f"t{i}") for i in range(10)]
    llm = FakeLLM(*calls, COMPLETE)
    limits = AgentLimits(max_history=4, max_action_log=3)

    result = await AutoAgent(llm, tools, limits=limits).run("task")

    assert result.status is AgentStatus.COMPLETED
    assert result.actions_taken == 10
    assert len(result.executions) == 3
    assert [e.result_summary for e in result.executions] == ["echo:t7", "echo:t8", "echo:t9"]

    last_prompt = llm.prompts[-1]
    actions = last_prompt.split("## Actions Taken So Far")[1].split("## Conversation History")[0]
    assert [line for line in actions.splitlines() if line.startswith("- ")] == [
        f"- {e}" for e in result.executions
    ]
    history = last_prompt.split("## Conversation History")[1].split("## Your Next Action")[0]
    entries = [line for line in history.splitlines() if line.startswith("[")]
    assert entries == [
        f"[assistant]: {calls[8]}",
        "[tool]: [echo]: echo:t8",
        f"[assistant]: {calls[9]}",
        "[tool]: [echo]: echo:t9",
    ]



@pytest.mark.asyncio
async def test_agent_nudges_then_forces_completion(tools):
    llm = FakeLLM("hmm, let me think")

    result = await AutoAgent(llm, tools).run("task")

    assert result.status is AgentStatus.FORCED_COMPLETE
    assert result.iterations == 0
    assert result.turns == 5
    assert NUDGE_MESSAGE not in llm.prompts[2]
    assert NUDGE_MESSAGE in llm.prompts[3]


@pytest.mark.asyncio
async def test_tool_use_resets_think_counter(tools):
    think = "thinking"
    llm = FakeLLM(think, think, think, think, tool_call("echo", text="x"), think, think, think, think, COMPLETE)

    result = await AutoAgent(llm, tools).run("task")

    assert result.status is AgentStatus.COMPLETED
    assert result.iterations == 2
    assert result.turns == 10


@pytest.mark.asyncio
async def test_agent_aborts_on_repeated_unknowns(tools):
    llm = FakeLLM('{"what": 1}')

    result = await AutoAgent(llm, tools).run("task")

    assert result.status is AgentStatus.ABORTED
    assert llm.calls == AgentLimits().max_unknowns
    assert FORMAT_REMINDER in llm.prompts[1]


@pytest.mark.asyncio
async def test_agent_aborts_on_llm_error(tools):
    result = await AutoAgent(FakeLLM(RuntimeError("offline")), tools).run("task")

    assert result.status is AgentStatus.ABORTED
    assert result.summary.startswith("LLM error after 0 iterations")


@pytest.mark.asyncio
async def test_agent_cancelled_before_first_turn(tools):
    cancel = asyncio.Event()
    cancel.set()
    llm = FakeLLM(COMPLETE)

    result = await AutoAgent(llm, tools, cancel=cancel).run("task")

    assert result.status is AgentStatus.CANCELLED
    assert llm.calls == 0


@pytest.mark.asyncio
async def test_agent_cancelled_during_llm_call(tools):
    cancel = asyncio.Event()
    llm = FakeLLM(COMPLETE, delay=5)
    agent = AutoAgent(llm, tools, cancel=cancel)

    run = asyncio.create_task(agent.run("task"))
    await asyncio.sleep(0.01)
    cancel.set()
    result = await asyncio.wait_for(run, timeout=1)

    assert result.status is AgentStatus.CANCELLED


def test_agent_rejects_bad_budget():
    with pytest.raises(ValueError):
        AgentLimits(max_iterations=0)


@pytest.mark.asyncio
async def test_run_auto_agent_returns_summary(tools):
    assert await run_auto_agent("task", 2, llm=FakeLLM(COMPLETE), tools=tools) == "all done"


@pytest.mark.asyncio
async def test_agent_token(make_state, tools):
    llm = FakeLLM(tool_call("echo", text="hi"), COMPLETE)
    state = make_state(llm=llm, tools=tools)

    await compile_and_run("AutoAgent('Say hi;maxIter=4')", state)

    assert state.output == "all done"
    assert state.query == "Say hi"
    assert state.context == '[echo] {"text": "hi"} -> echo:hi'
    assert "## Current Task\nSay hi" in llm.prompts[0]


@pytest.mark.asyncio
async def test_agent_token_without_task_is_skipped(make_state, sink):
    llm = FakeLLM(COMPLETE)
    state = make_state(llm=llm)

    await compile_and_run("Agent", state)

    assert llm.calls == 0
    assert "agent.skipped" in sink.names()
