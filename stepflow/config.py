"""Tunable defaults and environment settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _opt_env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    return value if value not in (None, "") else default


def _int_env(name: str, default: int) -> int:
    value = _opt_env(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None
    if parsed <= 0:
        raise ValueError(f"{name} must be > 0, got {parsed}")
    return parsed


@dataclass(frozen=True)
class RagDefaults:
    """Defaults for the RAG strategies.

    Args:
        group_size: Passages per group in map-reduce
        sub_questions: Maximum sub-questions in decompose-aggregate
        docs_per_sub_question: Passages retrieved for each sub-question
        document_separator: Separator between passages in a prompt
        min_k: Lower bound on passages retrieved by map-reduce and decompose
    """

    group_size: int = 6
    sub_questions: int = 4
    docs_per_sub_question: int = 6
    document_separator: str = "\n---\n"
    min_k: int = 4


@dataclass(frozen=True)
class AgentLimits:
    """Bounds on the autonomous agent loop.

    Only tool use and completion consume ``max_iterations``. Think and
    unparseable turns are free but capped by the consecutive thresholds.
    """

    max_iterations: int = 15
    nudge_thinks: int = 3
    force_complete_thinks: int = 5
    max_unknowns: int = 3
    max_history: int = 20
    max_action_log: int = 50
    prompt_history: int = 10
    prompt_actions: int = 10

    def __post_init__(self) -> None:
        if self.max_iterations <= 0:
            raise ValueError(f"max_iterations must be > 0, got {self.max_iterations}")
        if not 0 < self.nudge_thinks <= self.force_complete_thinks:
            raise ValueError("nudge_thinks must be > 0 and <= force_complete_thinks")
        if self.max_unknowns <= 0:
            raise ValueError(f"max_unknowns must be > 0, got {self.max_unknowns}")


@dataclass(frozen=True)
class DivideAndConquerConfig:
    max_parallelism: int = 4
    chunk_size: int = 500
    merge_separator: str = "\n\n"

    def __post_init__(self) -> None:
        if self.max_parallelism <= 0:
            raise ValueError(f"max_parallelism must be > 0, got {self.max_parallelism}")
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be > 0, got {self.chunk_size}")


@dataclass(frozen=True)
class Settings:
    """Process-level settings for the OpenAI-backed providers."""

    model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    base_url: str | None = None
    api_key: str | None = None
    rag: RagDefaults = field(default_factory=RagDefaults)
    agent: AgentLimits = field(default_factory=AgentLimits)
    divide_and_conquer: DivideAndConquerConfig = field(default_factory=DivideAndConquerConfig)

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from ``STEPFLOW_*`` and ``OPENAI_API_KEY`` variables."""
        return cls(
            model=_opt_env("STEPFLOW_MODEL", cls.model) or cls.model,
            embedding_model=_opt_env("STEPFLOW_EMBEDDING_MODEL", cls.embedding_model)
            or cls.embedding_model,
            base_url=_opt_env("STEPFLOW_BASE_URL"),
            api_key=_opt_env("OPENAI_API_KEY"),
            agent=AgentLimits(
                max_iterations=_int_env("STEPFLOW_MAX_ITERATIONS", AgentLimits.max_iterations)
            ),
            divide_and_conquer=DivideAndConquerConfig(
                max_parallelism=_int_env(
                    "STEPFLOW_MAX_PARALLELISM", DivideAndConquerConfig.max_parallelism
                )
            ),
        )
