"""Pipeline core: state, registry, DSL compiler and runtime."""

from .args import StepArgs, parse_string
from .cancellation import run_cancellable
from .dsl import CompiledStep, compile_pipeline, explain, parse_token, tokenize
from .errors import (
    CompileError,
    ExternalCallError,
    OperationCancelled,
    ProtocolError,
    StepError,
    StepflowError,
)
from .events import EventSink, LoggingSink, MemorySink, NullSink, RecordedEvent
from .registry import Step, StepFactory, TokenRegistry, default_registry, token
from .runtime import StepOutcome, compile_and_run, run_pipeline, run_step
from .state import (
    Branch,
    IngestEvent,
    PipelineState,
    ReasoningKind,
    ReasoningStep,
    ToolExecution,
    Vector,
)

__all__ = [
    # State
    "Branch",
    "IngestEvent",
    "PipelineState",
    "ReasoningKind",
    "ReasoningStep",
    "ToolExecution",
    "Vector",
    # Registry and DSL
    "CompiledStep",
    "Step",
    "StepArgs",
    "StepFactory",
    "TokenRegistry",
    "compile_pipeline",
    "default_registry",
    "explain",
    "parse_string",
    "parse_token",
    "token",
    "tokenize",
    # Runtime
    "StepOutcome",
    "compile_and_run",
    "run_pipeline",
    "run_step",
    "run_cancellable",
    # Events
    "EventSink",
    "LoggingSink",
    "MemorySink",
    "NullSink",
    "RecordedEvent",
    # Errors
    "CompileError",
    "ExternalCallError",
    "OperationCancelled",
    "ProtocolError",
    "StepError",
    "StepflowError",
]
