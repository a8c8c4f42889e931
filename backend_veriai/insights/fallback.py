"""
Deterministic fallback insight generator.

Pure function of the EvaluationContext: used whenever the language model is
unavailable or returns an invalid response.
"""

from __future__ import annotations

from typing import Any

from backend_veriai.analysis_engine.aggregator import EvaluationContext
from backend_veriai.analysis_engine.anomaly import RiskLevel, risk_level_for
from backend_veriai.insights.models import SOURCE_FALLBACK, TrustIndicators, TrustInsight

FALLBACK_CONFIDENCE = 0.7
CONSENSUS_FULL_RATINGS = 10


def fallback_veracity(context: EvaluationContext) -> str:
    comparison = context.accuracy_comparison
    if comparison is None:
        return "UNKNOWN"
    if comparison.mismatch:
        return "MISMATCH"
    if comparison.claimed is not None and comparison.measured is not None:
        return "MATCH"
    return "UNKNOWN"


def fallback_summary(context: EvaluationContext) -> str:
    anomalies = context.anomalies
    return (
        f"Automated analysis detected {len(anomalies.flags)} anomalies with risk score "
        f"{anomalies.risk_score}/100. {context.stats.total_ratings} total ratings from blockchain."
    )


def generate_fallback_insight(
    context: EvaluationContext,
    *,
    red_team: dict[str, Any] | None = None,
    insight_context: dict[str, Any] | None = None,
) -> TrustInsight:
    """
    Build a TrustInsight from heuristics only.

    Risk level from the anomaly score (HIGH >= 60, MEDIUM >= 30), fixed
    confidence 0.7, anomaly flags as evidence.
    """
    risk_score = context.anomalies.risk_score
    risk_level = risk_level_for(risk_score)
    comparison = context.accuracy_comparison
    indicators = TrustIndicators(
        claimed_accuracy=(comparison.claimed if comparison and comparison.claimed is not None else 0.0),
        measured_accuracy=(comparison.measured if comparison and comparison.measured is not None else 0.0),
        rating_authenticity=max(0.0, 1.0 - risk_score / 100.0),
        community_consensus=min(1.0, context.stats.total_ratings / CONSENSUS_FULL_RATINGS),
    )
    if risk_level is RiskLevel.HIGH:
        actions: tuple[str, ...] = ("flag_model", "request_review")
    else:
        actions = ("continue_monitoring",)
    return TrustInsight(
        subject=context.subject,
        veracity=fallback_veracity(context),
        risk_level=risk_level.value,
        confidence=FALLBACK_CONFIDENCE,
        summary=fallback_summary(context),
        evidence=tuple(flag.to_dict() for flag in context.anomalies.flags),
        recommended_actions=actions,
        trust_indicators=indicators,
        red_team=red_team,
        context=dict(insight_context or {}),
        source=SOURCE_FALLBACK,
    )
