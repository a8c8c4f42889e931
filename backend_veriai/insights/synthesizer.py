"""
Insight synthesis: language model first, deterministic fallback always available.

InsightSynthesizer.synthesize() never raises. It returns Synthesized when
the model produced a valid JSON insight and Fallback (with the reason)
otherwise. HIGH and CRITICAL insights trigger a best-effort notification.
"""

from __future__ import annotations

import json
from typing import Any, Protocol

from backend_veriai.analysis_engine.aggregator import EvaluationContext
from backend_veriai.core.exceptions import InsightValidationError, LanguageModelError
from backend_veriai.insights.fallback import generate_fallback_insight
from backend_veriai.insights.llm_client import LanguageModel
from backend_veriai.insights.models import (
    RISK_LEVEL_VALUES,
    SOURCE_LLM,
    VERACITY_VALUES,
    Fallback,
    Synthesized,
    SynthesisResult,
    TrustIndicators,
    TrustInsight,
)
from backend_veriai.insights.prompts import SYSTEM_PROMPT, build_analysis_prompt
from backend_veriai.sources.models import SecurityReport
from backend_veriai.veriai_logging import get_logger

logger = get_logger(__name__)

REQUIRED_FIELDS = ("veracity", "risk_level", "summary")
DEFAULT_LLM_CONFIDENCE = 0.5


class Notifier(Protocol):
    async def notify(self, insight: TrustInsight) -> bool: ...


def build_insight_context(context: EvaluationContext, security: SecurityReport | None) -> dict[str, Any]:
    """Compact numbers stored alongside the insight."""
    return {
        "total_ratings": context.stats.total_ratings,
        "trust_score": context.stats.trust_score,
        "anomaly_count": len(context.anomalies.flags),
        "risk_score": context.anomalies.risk_score,
        "security_tests": {
            "tests_run": security.metadata.tests_run if security else 0,
            "tests_failed": security.metadata.tests_failed if security else 0,
            "risk_level": security.risk_level if security else "UNKNOWN",
        },
    }


def _clamp_unit(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    return min(1.0, max(0.0, v))


def parse_llm_insight(
    raw: str,
    subject: str,
    *,
    red_team: dict[str, Any] | None = None,
    insight_context: dict[str, Any] | None = None,
    default_risk_level: str = "MEDIUM",
) -> TrustInsight:
    """
    Validate and normalize a language model response.

    Raises InsightValidationError when the text is not a JSON object or a
    required field is missing. An unknown risk_level is replaced with
    ``default_risk_level``; an unknown veracity becomes UNKNOWN.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise InsightValidationError(f"response is not valid JSON: {e}", subject=subject) from e
    if not isinstance(data, dict):
        raise InsightValidationError("response is not a JSON object", subject=subject)
    missing = [f for f in REQUIRED_FIELDS if data.get(f) in (None, "")]
    if missing:
        raise InsightValidationError(f"missing required fields: {', '.join(missing)}", subject=subject)

    risk_level = str(data["risk_level"]).strip().upper()
    if risk_level not in RISK_LEVEL_VALUES:
        logger.warning(
            "synthesis_risk_level_coerced",
            subject=subject,
            risk_level=data["risk_level"],
            default=default_risk_level,
        )
        risk_level = default_risk_level
    veracity = str(data["veracity"]).strip().upper()
    if veracity not in VERACITY_VALUES:
        veracity = "UNKNOWN"

    evidence = data.get("evidence")
    actions = data.get("recommended_actions")
    indicators = data.get("trust_indicators")
    indicators = indicators if isinstance(indicators, dict) else {}
    return TrustInsight(
        subject=subject,
        veracity=veracity,
        risk_level=risk_level,
        confidence=_clamp_unit(data.get("confidence"), DEFAULT_LLM_CONFIDENCE),
        summary=str(data["summary"]),
        evidence=tuple(evidence) if isinstance(evidence, list) else (),
        recommended_actions=tuple(str(a) for a in actions) if isinstance(actions, list) else (),
        trust_indicators=TrustIndicators(
            claimed_accuracy=_clamp_unit(indicators.get("claimed_accuracy"), 0.0),
            measured_accuracy=_clamp_unit(indicators.get("measured_accuracy"), 0.0),
            rating_authenticity=_clamp_unit(indicators.get("rating_authenticity"), 0.0),
            community_consensus=_clamp_unit(indicators.get("community_consensus"), 0.0),
        ),
        red_team=red_team,
        context=dict(insight_context or {}),
        source=SOURCE_LLM,
    )


class InsightSynthesizer:
    def __init__(
        self,
        llm: LanguageModel | None,
        *,
        notifier: Notifier | None = None,
    ) -> None:
        self._llm = llm
        self._notifier = notifier

    async def synthesize(
        self,
        context: EvaluationContext,
        security: SecurityReport | None = None,
    ) -> SynthesisResult:
        red_team = security.to_dict() if security is not None else None
        insight_context = build_insight_context(context, security)
        result = await self._synthesize(context, security, red_team, insight_context)

        if isinstance(result, Fallback):
            logger.warning("synthesis_fallback", subject=context.subject, reason=result.reason)
        else:
            logger.info("synthesis_llm_ok", subject=context.subject, risk_level=result.insight.risk_level)

        if result.insight.requires_notification:
            await self._notify(result.insight)
        return result

    async def _synthesize(
        self,
        context: EvaluationContext,
        security: SecurityReport | None,
        red_team: dict[str, Any] | None,
        insight_context: dict[str, Any],
    ) -> SynthesisResult:
        def _fallback(reason: str) -> Fallback:
            insight = generate_fallback_insight(
                context, red_team=red_team, insight_context=insight_context
            )
            return Fallback(insight=insight, reason=reason)

        if self._llm is None:
            return _fallback("llm_not_configured")
        try:
            raw = await self._llm.complete(SYSTEM_PROMPT, build_analysis_prompt(context, security))
            insight = parse_llm_insight(
                raw,
                context.subject,
                red_team=red_team,
                insight_context=insight_context,
                default_risk_level=context.anomalies.risk_level.value,
            )
        except LanguageModelError as e:
            return _fallback(f"llm_error: {e.message}")
        except InsightValidationError as e:
            return _fallback(f"invalid_response: {e.message}")
        except Exception as e:
            logger.exception("synthesis_unexpected_error", subject=context.subject, error=str(e))
            return _fallback(f"unexpected_error: {type(e).__name__}")
        return Synthesized(insight=insight)

    async def _notify(self, insight: TrustInsight) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.notify(insight)
        except Exception as e:
            logger.warning("synthesis_notify_failed", subject=insight.subject, error=str(e))
