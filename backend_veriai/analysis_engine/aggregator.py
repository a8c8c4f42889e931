"""
Multi-source data aggregation for one evaluation job.

Fans out to the four Source Readers concurrently, isolates per-source
failures (ratings -> [], model card / benchmark -> None), treats a failed
stats read as fatal, then runs anomaly detection and the accuracy comparison
and attaches historical data. Produces one frozen EvaluationContext.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from backend_veriai.analysis_engine.accuracy import AccuracyComparison, compare_accuracy
from backend_veriai.analysis_engine.anomaly import AnomalyConfig, AnomalyResult, detect_anomalies
from backend_veriai.database.models import HistoricalData
from backend_veriai.sources.models import (
    BenchmarkResult,
    ModelCard,
    ModelStats,
    RatingEvent,
    SourceResult,
)
from backend_veriai.sources.readers import (
    BenchmarkReader,
    ModelCardReader,
    RatingsReader,
    StatsReader,
)
from backend_veriai.veriai_logging import get_logger

logger = get_logger(__name__)


class HistoryProvider(Protocol):
    async def historical(self, subject: str) -> HistoricalData: ...


@dataclass(frozen=True)
class EvaluationContext:
    """Everything known about one subject for one job; built once, never mutated."""

    subject: str
    stats: ModelStats
    ratings: tuple[RatingEvent, ...]
    model_card: ModelCard | None
    benchmark: BenchmarkResult | None
    anomalies: AnomalyResult
    accuracy_comparison: AccuracyComparison | None
    historical: HistoricalData | None = None

    @property
    def display_name(self) -> str:
        if self.model_card is not None and self.model_card.model_id:
            return self.model_card.model_id
        return self.subject

    @property
    def task_type(self) -> str:
        if self.model_card is not None and self.model_card.pipeline_tag:
            return self.model_card.pipeline_tag
        return "general"

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "stats": self.stats.to_dict(),
            "ratings": [r.to_dict() for r in self.ratings],
            "model_card": self.model_card.to_dict() if self.model_card else None,
            "benchmark": self.benchmark.to_dict() if self.benchmark else None,
            "anomalies": self.anomalies.to_dict(),
            "accuracy_comparison": (
                self.accuracy_comparison.to_dict() if self.accuracy_comparison else None
            ),
            "historical": self.historical.to_dict() if self.historical else None,
        }


@dataclass(frozen=True)
class AggregationResult:
    success: bool
    context: EvaluationContext | None = None
    error: str | None = None


_SOURCES = ("stats", "ratings", "model_card", "benchmark")


def _settle(name: str, subject: str, res: Any, default: Any) -> SourceResult:
    """A reader that raised counts as a failed read with the source default."""
    if isinstance(res, SourceResult):
        return res
    if isinstance(res, BaseException) and not isinstance(res, Exception):
        raise res
    error = f"{name}: {type(res).__name__}: {res}"
    logger.warning("aggregator_reader_raised", subject=subject, source=name, error=error)
    return SourceResult.failed(error, default)


class DataAggregator:
    def __init__(
        self,
        stats_reader: StatsReader,
        ratings_reader: RatingsReader,
        model_card_reader: ModelCardReader,
        benchmark_reader: BenchmarkReader,
        *,
        history: HistoryProvider | None = None,
        anomaly_config: AnomalyConfig | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._stats = stats_reader
        self._ratings = ratings_reader
        self._model_card = model_card_reader
        self._benchmark = benchmark_reader
        self._history = history
        self._anomaly_config = anomaly_config
        self._clock = clock

    async def _historical(self, subject: str) -> HistoricalData | None:
        if self._history is None:
            return None
        try:
            return await self._history.historical(subject)
        except Exception as e:
            logger.warning("aggregator_history_failed", subject=subject, error=str(e))
            return None

    async def aggregate(self, subject: str) -> AggregationResult:
        """
        Read all sources for ``subject`` and assemble the EvaluationContext.

        Returns ``success=False`` only when the stats read fails; other
        sources degrade to their defaults.
        """
        raw = await asyncio.gather(
            self._stats.read(subject),
            self._ratings.read(subject),
            self._model_card.read(subject),
            self._benchmark.read(subject),
            return_exceptions=True,
        )
        stats_res, ratings_res, card_res, bench_res = (
            _settle(name, subject, res, default)
            for name, res, default in zip(_SOURCES, raw, (ModelStats.empty(), [], None, None))
        )

        if not stats_res.success:
            error = f"Failed to get model stats: {stats_res.error}"
            logger.error("aggregator_stats_failed", subject=subject, error=stats_res.error)
            return AggregationResult(success=False, error=error)

        ratings = list(ratings_res.payload) if ratings_res.success else []
        model_card = card_res.payload if card_res.success else None
        benchmark = bench_res.payload if bench_res.success else None
        degraded = [
            name
            for name, res in (("ratings", ratings_res), ("model_card", card_res), ("benchmark", bench_res))
            if not res.success
        ]

        now = self._clock() if self._clock is not None else None
        anomalies = detect_anomalies(ratings, stats_res.payload, now=now, config=self._anomaly_config)
        comparison = compare_accuracy(model_card, benchmark)
        historical = await self._historical(subject)

        context = EvaluationContext(
            subject=subject,
            stats=stats_res.payload,
            ratings=tuple(ratings),
            model_card=model_card,
            benchmark=benchmark,
            anomalies=anomalies,
            accuracy_comparison=comparison,
            historical=historical,
        )
        logger.info(
            "aggregator_context_built",
            subject=subject,
            rating_count=len(ratings),
            has_model_card=model_card is not None,
            has_benchmark=benchmark is not None,
            risk_score=anomalies.risk_score,
            anomaly_count=len(anomalies.flags),
            degraded_sources=degraded,
        )
        return AggregationResult(success=True, context=context)
