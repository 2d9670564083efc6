"""Self-critique reasoning."""

from .self_critique import (
    Confidence,
    CritiquePhase,
    SelfCritiqueLoop,
    SelfCritiqueResult,
    assess_confidence,
    critique,
    draft,
    improve,
)

__all__ = [
    "Confidence",
    "CritiquePhase",
    "SelfCritiqueLoop",
    "SelfCritiqueResult",
    "assess_confidence",
    "critique",
    "draft",
    "improve",
]
