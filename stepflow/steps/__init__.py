"""Built-in step library.

Importing this package registers every built-in token on
:data:`stepflow.core.registry.default_registry`.
"""

from . import agent, basic, orchestration, rag, reasoning

__all__ = ["agent", "basic", "orchestration", "rag", "reasoning"]
