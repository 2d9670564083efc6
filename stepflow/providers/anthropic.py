"""Anthropic Claude chat provider."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..core.errors import ExternalCallError
from ..core.state import ToolExecution

if TYPE_CHECKING:
    from ..agents.tools import ToolRegistry

logger = logging.getLogger(__name__)


def _anthropic_format_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "name": t["name"],
            "description": t["description"],
            "input_schema": t["parameters"],
        }
        for t in tools
    ]


@dataclass
class AnthropicChat:
    """Anthropic Claude model provider.

    Implements the plain and the tool-aware LLM interfaces. ``tool_use``
    blocks are answered with ``tool_result`` blocks for up to
    ``max_tool_rounds`` rounds.
    """

    model: str = "claude-sonnet-4-5"
    api_key: str | None = None
    temperature: float = 0.7
    max_tokens: int = 2048
    max_tool_rounds: int = 5
    client: Any = field(default=None, repr=False)

    def _client(self) -> Any:
        if self.client is None:
            try:
                from anthropic import AsyncAnthropic
            except ImportError:
                raise ImportError(
                    "anthropic package required. Install with: pip install anthropic"
                )
            self.client = AsyncAnthropic(api_key=self.api_key)
        return self.client

    async def _complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> Any:
        request_params: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        if tools:
            request_params["tools"] = _anthropic_format_tools(tools)

        client = self._client()
        try:
            return await client.messages.create(**request_params)
        except Exception as exc:
            raise ExternalCallError(f"anthropic:{self.model}", exc) from exc

    @staticmethod
    def _text(response: Any) -> str:
        return "".join(block.text for block in response.content if block.type == "text")

    async def generate_text(self, prompt: str) -> str:
        response = await self._complete([{"role": "user", "content": prompt}])
        return self._text(response)

    async def generate_with_tools(
        self,
        prompt: str,
        tools: ToolRegistry,
    ) -> tuple[str, list[ToolExecution]]:
        messages: list[dict[str, Any]] = [{"role": "user", "content": prompt}]
        schemas = tools.schemas()
        executions: list[ToolExecution] = []

        for _ in range(self.max_tool_rounds):
            response = await self._complete(messages, tools=schemas)
            uses = [block for block in response.content if block.type == "tool_use"]
            if not uses:
                return self._text(response), executions

            messages.append({"role": "assistant", "content": response.content})
            results = []
            for block in uses:
                args_text = json.dumps(block.input)
                result = await tools.invoke(block.name, args_text)
                executions.append(ToolExecution.summarize(block.name, args_text, result))
                results.append({"type": "tool_result", "tool_use_id": block.id, "content": result})
            messages.append({"role": "user", "content": results})

        logger.debug("Tool rounds exhausted after %d rounds", self.max_tool_rounds)
        return self._text(await self._complete(messages, tools=schemas)), executions
