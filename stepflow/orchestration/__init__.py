"""Parallel divide-and-conquer orchestration."""

from .divide_and_conquer import (
    DivideAndConquerOrchestrator,
    ModelRouter,
    OrchestrationResult,
    TaskType,
    chunk_text,
    classify_task,
)

__all__ = [
    "DivideAndConquerOrchestrator",
    "ModelRouter",
    "OrchestrationResult",
    "TaskType",
    "chunk_text",
    "classify_task",
]
