"""Model and store collaborators."""

from .anthropic import AnthropicChat
from .openai import OpenAIChat, OpenAIEmbedder
from .protocols import LLM, Embedder, ToolAwareLLM, VectorStore, generate, generate_with_tools

__all__ = [
    "LLM",
    "Embedder",
    "ToolAwareLLM",
    "VectorStore",
    "generate",
    "generate_with_tools",
    "AnthropicChat",
    "OpenAIChat",
    "OpenAIEmbedder",
]
