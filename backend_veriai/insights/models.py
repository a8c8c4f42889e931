"""
Trust insight models and the two-variant synthesis result.

A TrustInsight is produced once per evaluation run, either by the language
model (``source="llm"``) or by the deterministic fallback
(``source="fallback"``), and is never mutated after it is recorded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union

VERACITY_VALUES = ("MATCH", "MISMATCH", "PARTIAL_MATCH", "UNKNOWN")
RISK_LEVEL_VALUES = ("LOW", "MEDIUM", "HIGH", "CRITICAL")
NOTIFY_RISK_LEVELS = frozenset({"HIGH", "CRITICAL"})

SOURCE_LLM = "llm"
SOURCE_FALLBACK = "fallback"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class TrustIndicators:
    claimed_accuracy: float = 0.0
    measured_accuracy: float = 0.0
    rating_authenticity: float = 0.0
    community_consensus: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "claimed_accuracy": self.claimed_accuracy,
            "measured_accuracy": self.measured_accuracy,
            "rating_authenticity": self.rating_authenticity,
            "community_consensus": self.community_consensus,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "TrustIndicators":
        data = data or {}

        def _f(key: str) -> float:
            try:
                return float(data.get(key) or 0.0)
            except (TypeError, ValueError):
                return 0.0

        return cls(
            claimed_accuracy=_f("claimed_accuracy"),
            measured_accuracy=_f("measured_accuracy"),
            rating_authenticity=_f("rating_authenticity"),
            community_consensus=_f("community_consensus"),
        )


@dataclass(frozen=True)
class TrustInsight:
    """Synthesized qualitative and quantitative judgment for one subject."""

    subject: str
    veracity: str
    """MATCH | MISMATCH | PARTIAL_MATCH | UNKNOWN"""
    risk_level: str
    """LOW | MEDIUM | HIGH | CRITICAL"""
    confidence: float
    summary: str
    evidence: tuple[Any, ...] = ()
    recommended_actions: tuple[str, ...] = ()
    trust_indicators: TrustIndicators = field(default_factory=TrustIndicators)
    red_team: dict[str, Any] | None = None
    """Security prober report, verbatim."""
    context: dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=utc_now_iso)
    source: str = SOURCE_FALLBACK

    @property
    def requires_notification(self) -> bool:
        return self.risk_level in NOTIFY_RISK_LEVELS

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "veracity": self.veracity,
            "risk_level": self.risk_level,
            "confidence": self.confidence,
            "summary": self.summary,
            "evidence": list(self.evidence),
            "recommended_actions": list(self.recommended_actions),
            "trust_indicators": self.trust_indicators.to_dict(),
            "red_team": self.red_team,
            "context": self.context,
            "created_at": self.created_at,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrustInsight":
        """Rebuild from a stored dict (see to_dict)."""
        return cls(
            subject=str(data.get("subject") or ""),
            veracity=str(data.get("veracity") or "UNKNOWN"),
            risk_level=str(data.get("risk_level") or "LOW"),
            confidence=float(data.get("confidence") or 0.0),
            summary=str(data.get("summary") or ""),
            evidence=tuple(data.get("evidence") or ()),
            recommended_actions=tuple(str(a) for a in data.get("recommended_actions") or ()),
            trust_indicators=TrustIndicators.from_dict(data.get("trust_indicators")),
            red_team=data.get("red_team"),
            context=dict(data.get("context") or {}),
            created_at=str(data.get("created_at") or utc_now_iso()),
            source=str(data.get("source") or SOURCE_FALLBACK),
        )


@dataclass(frozen=True)
class Synthesized:
    """The language model produced a valid insight."""

    insight: TrustInsight


@dataclass(frozen=True)
class Fallback:
    """The deterministic generator produced the insight; ``reason`` says why."""

    insight: TrustInsight
    reason: str


SynthesisResult = Union[Synthesized, Fallback]
