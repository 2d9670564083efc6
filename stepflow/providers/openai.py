"""OpenAI-backed chat and embedding providers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Sequence

from ..core.errors import ExternalCallError
from ..core.state import ToolExecution

if TYPE_CHECKING:
    from ..agents.tools import ToolRegistry
    from ..config import Settings

logger = logging.getLogger(__name__)


def _openai_format_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert tool schemas to OpenAI format."""
    return [
        {
            "type": "function",
            "function": {
                "name": tool["name"],
                "description": tool["description"],
                "parameters": tool["parameters"],
            },
        }
        for tool in tools
    ]


def _async_client(api_key: str | None, base_url: str | None) -> Any:
    try:
        from openai import AsyncOpenAI
    except ImportError:
        raise ImportError("openai package required. Install with: pip install openai")

    return AsyncOpenAI(api_key=api_key, base_url=base_url)


@dataclass
class OpenAIChat:
    """OpenAI chat model provider.

    Implements both the plain and the tool-aware LLM interfaces. With tools,
    the model may request function calls for up to ``max_tool_rounds`` rounds
    before a final answer is requested without tools.

    Args:
        model: Chat model name
        api_key: API key, defaults to the client's ``OPENAI_API_KEY`` lookup
        base_url: Alternative OpenAI-compatible endpoint (e.g. a local vLLM)
        temperature: Sampling temperature
        max_tokens: Completion token limit
        max_tool_rounds: Tool-calling rounds before forcing a text answer
        client: Pre-built ``AsyncOpenAI`` client, mainly for tests
    """

    model: str = "gpt-4o-mini"
    api_key: str | None = None
    base_url: str | None = None
    temperature: float = 0.7
    max_tokens: int = 2048
    max_tool_rounds: int = 5
    client: Any = field(default=None, repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenAIChat:
        return cls(model=settings.model, api_key=settings.api_key, base_url=settings.base_url)

    def _client(self) -> Any:
        if self.client is None:
            self.client = _async_client(self.api_key, self.base_url)
        return self.client

    async def _complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> Any:
        request_params: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            request_params["tools"] = _openai_format_tools(tools)

        try:
            response = await self._client().chat.completions.create(**request_params)
        except ImportError:
            raise
        except Exception as exc:
            raise ExternalCallError(f"openai:{self.model}", exc) from exc
        return response.choices[0].message

    async def generate_text(self, prompt: str) -> str:
        """Generate a completion for a single user prompt."""
        message = await self._complete([{"role": "user", "content": prompt}])
        return message.content or ""

    async def generate_with_tools(
        self,
        prompt: str,
        tools: ToolRegistry,
    ) -> tuple[str, list[ToolExecution]]:
        """Answer ``prompt`` letting the model call tools from ``tools``.

        Returns:
            The final text and a display-safe record of every tool call
        """
        messages: list[dict[str, Any]] = [{"role": "user", "content": prompt}]
        schemas = tools.schemas()
        executions: list[ToolExecution] = []

        for _ in range(self.max_tool_rounds):
            message = await self._complete(messages, tools=schemas)
            if not message.tool_calls:
                return message.content or "", executions

            messages.append(
                {
                    "role": "assistant",
                    "content": message.content or "",
                    "tool_calls": [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {
                                "name": tc.function.name,
                                "arguments": tc.function.arguments,
                            },
                        }
                        for tc in message.tool_calls
                    ],
                }
            )
            for tc in message.tool_calls:
                result = await tools.invoke(tc.function.name, tc.function.arguments or "")
                executions.append(
                    ToolExecution.summarize(tc.function.name, tc.function.arguments, result)
                )
                messages.append({"role": "tool", "tool_call_id": tc.id, "content": result})

        logger.debug("Tool rounds exhausted after %d rounds", self.max_tool_rounds)
        message = await self._complete(messages)
        return message.content or "", executions


@dataclass
class OpenAIEmbedder:
    """OpenAI embedding provider."""

    model: str = "text-embedding-3-small"
    api_key: str | None = None
    base_url: str | None = None
    client: Any = field(default=None, repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenAIEmbedder:
        return cls(model=settings.embedding_model, api_key=settings.api_key, base_url=settings.base_url)

    def _client(self) -> Any:
        if self.client is None:
            self.client = _async_client(self.api_key, self.base_url)
        return self.client

    async def embed(self, text: str) -> list[float]:
        return (await self.embed_many([text]))[0]

    async def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            response = await self._client().embeddings.create(model=self.model, input=list(texts))
        except ImportError:
            raise
        except Exception as exc:
            raise ExternalCallError(f"openai:{self.model}", exc) from exc
        data = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in data]

