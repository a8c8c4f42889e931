"""
Evaluation pipeline: one full trust evaluation for one subject.

aggregate -> security probe -> synthesize -> record insight, then the
non-critical writes (security report, trust snapshot, cache entry). Only a
failed stats read or a failed primary insight write fails the job; every
other error degrades and is logged. run_evaluation() never raises.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from backend_veriai.analysis_engine.aggregator import DataAggregator, EvaluationContext
from backend_veriai.chain_listener.models import REASON_MANUAL
from backend_veriai.core.exceptions import PersistenceError
from backend_veriai.database.result_store import ResultStore
from backend_veriai.insights.models import Fallback, TrustInsight
from backend_veriai.insights.synthesizer import InsightSynthesizer
from backend_veriai.sources.models import ProbeRequest, SecurityReport
from backend_veriai.sources.security_prober import SecurityProber
from backend_veriai.veriai_logging import bind_subject, get_logger, job_context

logger = get_logger(__name__)

CACHE_STATUS_COMPLETED = "completed"


@dataclass(frozen=True)
class EvaluationOutcome:
    success: bool
    subject: str
    reason: str
    insight_id: int | None = None
    insight: TrustInsight | None = None
    error: str | None = None
    fallback_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success, "subject": self.subject, "reason": self.reason}
        if self.insight_id is not None:
            out["insight_id"] = self.insight_id
        if self.insight is not None:
            out["insight"] = self.insight.to_dict()
        if self.error is not None:
            out["error"] = self.error
        if self.fallback_reason is not None:
            out["fallback_reason"] = self.fallback_reason
        return out


def build_cache_payload(context: EvaluationContext, insight: TrustInsight, insight_id: int) -> dict[str, Any]:
    """Cached summary read by the top-N and min-accuracy queries."""
    comparison = context.accuracy_comparison
    accuracy = None
    if comparison is not None:
        accuracy = comparison.measured if comparison.measured is not None else comparison.claimed
    return {
        "score": context.stats.trust_score,
        "trust_score": context.stats.trust_score,
        "risk_level": insight.risk_level,
        "veracity": insight.veracity,
        "accuracy": accuracy,
        "insight_id": insight_id,
        "status": CACHE_STATUS_COMPLETED,
    }


class EvaluationPipeline:
    def __init__(
        self,
        aggregator: DataAggregator,
        prober: SecurityProber,
        synthesizer: InsightSynthesizer,
        store: ResultStore,
    ) -> None:
        self._aggregator = aggregator
        self._prober = prober
        self._synthesizer = synthesizer
        self._store = store

    async def run_evaluation(self, subject: str, reason: str = REASON_MANUAL) -> EvaluationOutcome:
        """Run the full pipeline; failures come back as ``success=False`` with an error."""
        job_id = uuid.uuid4().hex[:12]
        log = bind_subject(subject, reason=reason, job_id=job_id)
        log.info("pipeline_job_started")
        with job_context(subject, job_id):
            try:
                return await self._run(subject, reason, log)
            except Exception as e:
                log.exception("pipeline_job_crashed", error=str(e))
                return EvaluationOutcome(success=False, subject=subject, reason=reason, error=str(e))

    async def _probe(self, context: EvaluationContext, log: Any) -> SecurityReport:
        request = ProbeRequest(
            model_card=context.model_card,
            ratings=context.ratings,
            baseline_trust_score=context.stats.trust_score / 100.0,
            name=context.display_name,
        )
        try:
            return await self._prober.probe(context.subject, request)
        except Exception as e:
            log.warning("pipeline_probe_failed", error=str(e))
            return SecurityReport.unavailable(context.subject, type(e).__name__)

    async def _run(self, subject: str, reason: str, log: Any) -> EvaluationOutcome:
        aggregated = await self._aggregator.aggregate(subject)
        if not aggregated.success or aggregated.context is None:
            log.warning("pipeline_job_abandoned", error=aggregated.error)
            return EvaluationOutcome(success=False, subject=subject, reason=reason, error=aggregated.error)
        context = aggregated.context

        security = await self._probe(context, log)
        result = await self._synthesizer.synthesize(context, security)
        insight = result.insight
        fallback_reason = result.reason if isinstance(result, Fallback) else None

        try:
            insight_id = await self._store.record_insight(insight)
        except PersistenceError as e:
            log.error("pipeline_insight_write_failed", error=e.message)
            return EvaluationOutcome(
                success=False,
                subject=subject,
                reason=reason,
                insight=insight,
                error=e.message,
                fallback_reason=fallback_reason,
            )

        await self._record_secondary(context, security, insight, insight_id, log)

        log.info(
            "pipeline_job_done",
            insight_id=insight_id,
            risk_level=insight.risk_level,
            veracity=insight.veracity,
            source=insight.source,
        )
        return EvaluationOutcome(
            success=True,
            subject=subject,
            reason=reason,
            insight_id=insight_id,
            insight=insight,
            fallback_reason=fallback_reason,
        )

    async def _record_secondary(
        self,
        context: EvaluationContext,
        security: SecurityReport,
        insight: TrustInsight,
        insight_id: int,
        log: Any,
    ) -> None:
        """Security report, snapshot and cache writes; each failure is logged only."""
        subject = context.subject
        if security.available:
            try:
                await self._store.record_security_report(subject, security, insight_id)
            except PersistenceError as e:
                log.warning("pipeline_security_report_write_failed", error=e.message)
        try:
            await self._store.record_snapshot(subject, context.stats)
        except PersistenceError as e:
            log.warning("pipeline_snapshot_write_failed", error=e.message)
        try:
            await self._store.upsert_cache(
                subject, context.task_type, build_cache_payload(context, insight, insight_id)
            )
        except PersistenceError as e:
            log.warning("pipeline_cache_write_failed", error=e.message)
