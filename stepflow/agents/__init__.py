"""Autonomous tool-using agent."""

from .agent import AutoAgent, run_auto_agent
from .builtin import default_tools
from .protocol import parse_agent_action
from .state import (
    AgentAction,
    AgentMessage,
    AgentPhase,
    AgentResult,
    AgentStatus,
    Complete,
    Think,
    Unknown,
    UseTool,
)
from .tools import FunctionTool, Tool, ToolRegistry, tool

__all__ = [
    # High-level API
    "AutoAgent",
    "run_auto_agent",
    # State types
    "AgentAction",
    "AgentMessage",
    "AgentPhase",
    "AgentResult",
    "AgentStatus",
    "Complete",
    "Think",
    "Unknown",
    "UseTool",
    "parse_agent_action",
    # Tools
    "FunctionTool",
    "Tool",
    "ToolRegistry",
    "default_tools",
    "tool",
]
