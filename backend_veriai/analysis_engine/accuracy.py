"""
Claimed-vs-measured accuracy comparison.

Claimed accuracy comes from the model card; measured accuracy from the
independent benchmark. Pure function; returns None when neither side has a
value.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from backend_veriai.sources.models import BenchmarkResult, ModelCard

MISMATCH_THRESHOLD = 0.10
HIGH_SEVERITY_THRESHOLD = 0.25


@dataclass(frozen=True)
class AccuracyComparison:
    claimed: float | None
    measured: float | None
    difference: float | None
    mismatch: bool
    severity: str
    """low | medium | high"""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _as_fraction(value: Any) -> float | None:
    """Coerce to a 0-1 fraction; percent values (e.g. 92.5) are scaled down."""
    if value is None or isinstance(value, bool):
        return None
    try:
        v = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if v > 1.0:
        v = v / 100.0
    return v


def _dict_items(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


def claimed_accuracy(card: ModelCard | None) -> float | None:
    """First available of: direct field, cardData.accuracy, eval_results[0], model-index metric."""
    if card is None:
        return None
    if card.claimed_accuracy is not None:
        return _as_fraction(card.claimed_accuracy)
    direct = _as_fraction(card.card_data.get("accuracy"))
    if direct is not None:
        return direct
    eval_results = card.card_data.get("eval_results") or []
    if isinstance(eval_results, list) and eval_results and isinstance(eval_results[0], dict):
        value = _as_fraction(eval_results[0].get("value"))
        if value is not None:
            return value
    for entry in card.model_index:
        if not isinstance(entry, dict):
            continue
        for result in _dict_items(entry.get("results")):
            for metric in _dict_items(result.get("metrics")):
                value = _as_fraction(metric.get("value"))
                if value is not None:
                    return value
    return None


def measured_accuracy(benchmark: BenchmarkResult | None) -> float | None:
    """First available of: measured_accuracy, metrics.accuracyPercentage / 100, accuracy."""
    if benchmark is None:
        return None
    if benchmark.measured_accuracy is not None:
        return _as_fraction(benchmark.measured_accuracy)
    pct = benchmark.metrics.get("accuracyPercentage")
    if pct is not None:
        try:
            return float(pct) / 100.0
        except (TypeError, ValueError):
            pass
    return _as_fraction(benchmark.accuracy)


def compare_accuracy(
    card: ModelCard | None,
    benchmark: BenchmarkResult | None,
) -> AccuracyComparison | None:
    """
    Compare self-reported and measured accuracy.

    difference = |claimed - measured| when both are present, else None;
    mismatch when difference > 0.10; severity high above 0.25, medium on
    mismatch, low otherwise.
    """
    claimed = claimed_accuracy(card)
    measured = measured_accuracy(benchmark)
    if claimed is None and measured is None:
        return None
    difference: float | None = None
    if claimed is not None and measured is not None:
        # strip float noise: 0.90 - 0.78 -> 0.12
        difference = round(abs(claimed - measured), 10)
    mismatch = difference is not None and difference > MISMATCH_THRESHOLD
    if difference is not None and difference > HIGH_SEVERITY_THRESHOLD:
        severity = "high"
    elif mismatch:
        severity = "medium"
    else:
        severity = "low"
    return AccuracyComparison(
        claimed=claimed,
        measured=measured,
        difference=difference,
        mismatch=mismatch,
        severity=severity,
    )
