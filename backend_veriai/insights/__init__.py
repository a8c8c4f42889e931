"""Trust insight models, prompts, language-model client and synthesizer."""

from backend_veriai.insights.models import (
    Fallback,
    Synthesized,
    SynthesisResult,
    TrustIndicators,
    TrustInsight,
)

__all__ = [
    "Fallback",
    "Synthesized",
    "SynthesisResult",
    "TrustIndicators",
    "TrustInsight",
]
