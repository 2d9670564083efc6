"""stepflow - Pipe-delimited pipelines for retrieval, reasoning and agents."""

from .config import AgentLimits, DivideAndConquerConfig, RagDefaults, Settings
from .core.dsl import compile_pipeline, explain
from .core.errors import (
    CompileError,
    ExternalCallError,
    OperationCancelled,
    ProtocolError,
    StepError,
    StepflowError,
)
from .core.events import EventSink, LoggingSink, MemorySink, NullSink
from .core.registry import TokenRegistry, default_registry, token
from .core.runtime import StepOutcome, compile_and_run, run_pipeline, run_step
from .core.state import Branch, IngestEvent, PipelineState, ReasoningKind, ReasoningStep

__version__ = "0.1.0"

__all__ = [
    # Pipelines
    "PipelineState",
    "Branch",
    "IngestEvent",
    "ReasoningKind",
    "ReasoningStep",
    "TokenRegistry",
    "compile_and_run",
    "compile_pipeline",
    "default_registry",
    "explain",
    "run_pipeline",
    "run_step",
    "StepOutcome",
    "token",
    # Events
    "EventSink",
    "LoggingSink",
    "MemorySink",
    "NullSink",
    # Configuration
    "AgentLimits",
    "DivideAndConquerConfig",
    "RagDefaults",
    "Settings",
    # Errors
    "CompileError",
    "ExternalCallError",
    "OperationCancelled",
    "ProtocolError",
    "StepError",
    "StepflowError",
]
