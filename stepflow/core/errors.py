"""Core error types for stepflow."""

from __future__ import annotations


class StepflowError(Exception):
    """Base exception for all stepflow errors."""

    pass


class CompileError(StepflowError):
    """Raised when a pipeline expression references an unknown token.

    Attributes:
        token: The raw token text that could not be resolved.
        position: Zero-based index of the token in the expression.
    """

    def __init__(self, token: str, position: int, expression: str = ""):
        self.token = token
        self.position = position
        self.expression = expression
        super().__init__(f"Unknown pipeline token '{token}' at position {position}")


class StepError(StepflowError):
    """Raised by a step to report a failure the runtime should record.

    Attributes:
        step_name: Name of the failing step.
        kind: Short failure category (e.g. ``missing-file``).
    """

    def __init__(self, step_name: str, kind: str, message: str):
        self.step_name = step_name
        self.kind = kind
        super().__init__(message)


class ExternalCallError(StepflowError):
    """Raised when an LLM, embedding, vector store or tool call fails.

    Attributes:
        service: Name of the collaborator that failed.
        cause: The original exception, if any.
    """

    def __init__(self, service: str, cause: Exception | None = None, message: str = ""):
        self.service = service
        self.cause = cause
        detail = message or (f"{cause.__class__.__name__}: {cause}" if cause else "")
        super().__init__(f"{service} call failed. {detail}".rstrip())


class ProtocolError(StepflowError):
    """Raised when a model response does not follow the agent protocol."""

    pass


class OperationCancelled(StepflowError):
    """Raised when a cancellation signal interrupts an external call."""

    pass


def kind_of(exc: BaseException) -> str:
    """Return the failure kind used in audit events for an exception."""
    if isinstance(exc, StepError):
        return exc.kind
    return exc.__class__.__name__


def safe_message(exc: BaseException) -> str:
    """Exception message with pipe characters replaced for DSL-adjacent logs."""
    return str(exc).replace("|", ":")
