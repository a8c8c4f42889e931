"""
Rule-based anomaly detection for on-chain ratings.

Flags rating bursts, clusters of new wallets, whale stake concentration,
uniform scores and slashed ratings. Fully explainable: each flag carries
its type, severity, a human-readable detail and the offending ratings as
evidence. Pure and deterministic; ``now`` is injectable for tests.
"""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Sequence

from backend_veriai.sources.models import ModelStats, RatingEvent


class AnomalySeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AnomalyType(str, Enum):
    RATE_SPIKE = "rate_spike"
    NEW_WALLET_CLUSTER = "new_wallet_cluster"
    WHALE_STAKE = "whale_stake"
    SCORE_UNIFORMITY = "score_uniformity"
    SLASHED_RATINGS = "slashed_ratings"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class AnomalyFlag:
    """Single explainable anomaly flag."""

    type: AnomalyType
    severity: AnomalySeverity
    detail: str
    """Human-readable explanation of why this was flagged."""
    evidence: Any = None
    """Offending ratings, addresses or distributions; for audit."""
    contribution: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "detail": self.detail,
            "evidence": self.evidence,
        }


@dataclass(frozen=True)
class AnomalyResult:
    """
    Result of anomaly detection for one subject.

    ``flags`` keeps detection order; ``risk_score`` is the sum of the
    contributions of the flags raised.
    """

    flags: tuple[AnomalyFlag, ...] = ()
    risk_score: int = 0
    risk_level: RiskLevel = RiskLevel.LOW

    @property
    def is_anomalous(self) -> bool:
        return len(self.flags) > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "flags": [f.to_dict() for f in self.flags],
            "risk_score": self.risk_score,
            "risk_level": self.risk_level.value,
        }


@dataclass(frozen=True)
class AnomalyConfig:
    """Thresholds and score contributions for each rule."""

    rate_spike_window_sec: int = 3600
    rate_spike_min_count: int = 5
    rate_spike_points: int = 20

    new_wallet_window_sec: int = 7 * 86400
    new_wallet_min_count: int = 3
    new_wallet_min_ratio: float = 0.5
    new_wallet_points: int = 35

    whale_stake_min_share: float = 0.40
    whale_stake_points: int = 30

    uniformity_min_ratings: int = 5
    uniformity_min_share: float = 0.80
    uniformity_points: int = 15

    slashed_points: int = 25

    high_risk_threshold: int = 60
    medium_risk_threshold: int = 30


def risk_level_for(risk_score: float, config: AnomalyConfig | None = None) -> RiskLevel:
    """HIGH at or above 60, MEDIUM at or above 30, else LOW."""
    cfg = config or AnomalyConfig()
    if risk_score >= cfg.high_risk_threshold:
        return RiskLevel.HIGH
    if risk_score >= cfg.medium_risk_threshold:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _check_rate_spike(
    ratings: Sequence[RatingEvent], now: float, config: AnomalyConfig
) -> AnomalyFlag | None:
    recent = [r for r in ratings if now - r.timestamp < config.rate_spike_window_sec]
    if len(recent) < config.rate_spike_min_count:
        return None
    return AnomalyFlag(
        type=AnomalyType.RATE_SPIKE,
        severity=AnomalySeverity.MEDIUM,
        detail=f"{len(recent)} ratings in the last {config.rate_spike_window_sec // 60} minutes",
        evidence=[{"user": r.user, "timestamp": r.timestamp_iso} for r in recent],
        contribution=config.rate_spike_points,
    )


def _check_new_wallet_cluster(
    ratings: Sequence[RatingEvent], now: float, config: AnomalyConfig
) -> AnomalyFlag | None:
    if not ratings:
        return None
    fresh = [r for r in ratings if now - r.wallet_age_reference < config.new_wallet_window_sec]
    ratio = len(fresh) / len(ratings)
    if len(fresh) < config.new_wallet_min_count or ratio <= config.new_wallet_min_ratio:
        return None
    return AnomalyFlag(
        type=AnomalyType.NEW_WALLET_CLUSTER,
        severity=AnomalySeverity.HIGH,
        detail=(
            f"{len(fresh)} out of {len(ratings)} ratings from new wallets "
            f"({round(ratio * 100)}%)"
        ),
        evidence=[{"user": r.user, "age": "less than 7 days"} for r in fresh],
        contribution=config.new_wallet_points,
    )


def _check_whale_stake(
    ratings: Sequence[RatingEvent], now: float, config: AnomalyConfig
) -> AnomalyFlag | None:
    if not ratings:
        return None
    total = sum(r.stake for r in ratings)
    if total <= 0:
        return None
    whale = max(ratings, key=lambda r: r.stake)
    share = whale.stake / total
    if share <= config.whale_stake_min_share:
        return None
    return AnomalyFlag(
        type=AnomalyType.WHALE_STAKE,
        severity=AnomalySeverity.HIGH,
        detail=f"Single address controls {round(share * 100)}% of total stake",
        evidence={"user": whale.user, "stake": whale.stake, "percentage": round(share * 100)},
        contribution=config.whale_stake_points,
    )


def _check_score_uniformity(
    ratings: Sequence[RatingEvent], now: float, config: AnomalyConfig
) -> AnomalyFlag | None:
    if len(ratings) < config.uniformity_min_ratings:
        return None
    distribution = Counter(r.score for r in ratings)
    # Ties resolve to the lowest score so the result never depends on input order
    dominant, count = min(distribution.items(), key=lambda kv: (-kv[1], kv[0]))
    share = count / len(ratings)
    if share <= config.uniformity_min_share:
        return None
    return AnomalyFlag(
        type=AnomalyType.SCORE_UNIFORMITY,
        severity=AnomalySeverity.MEDIUM,
        detail=f"{round(share * 100)}% of ratings are {dominant}/5",
        evidence={str(score): n for score, n in sorted(distribution.items())},
        contribution=config.uniformity_points,
    )


def _check_slashed(
    ratings: Sequence[RatingEvent], now: float, config: AnomalyConfig
) -> AnomalyFlag | None:
    slashed = [r for r in ratings if r.slashed]
    if not slashed:
        return None
    return AnomalyFlag(
        type=AnomalyType.SLASHED_RATINGS,
        severity=AnomalySeverity.HIGH,
        detail=f"{len(slashed)} ratings have been slashed",
        evidence=[{"user": r.user, "score": r.score} for r in slashed],
        contribution=config.slashed_points,
    )


_CHECKS: tuple[Callable[[Sequence[RatingEvent], float, AnomalyConfig], AnomalyFlag | None], ...] = (
    _check_rate_spike,
    _check_new_wallet_cluster,
    _check_whale_stake,
    _check_score_uniformity,
    _check_slashed,
)


def detect_anomalies(
    ratings: Sequence[RatingEvent],
    stats: ModelStats | None = None,
    now: float | None = None,
    config: AnomalyConfig | None = None,
) -> AnomalyResult:
    """
    Run all rating anomaly rules for one subject.

    Each rule fires at most once and adds its fixed contribution to the
    risk score. Identical inputs (including ``now``) always give identical
    output.

    Args:
        ratings: All on-chain ratings for the subject.
        stats: Aggregate stats; accepted for interface symmetry, no rule
            currently reads them.
        now: Unix time to evaluate recency against; wall clock if None.
        config: Thresholds; defaults if None.
    """
    cfg = config or AnomalyConfig()
    ts_now = time.time() if now is None else now
    flags: list[AnomalyFlag] = []
    for check in _CHECKS:
        flag = check(ratings, ts_now, cfg)
        if flag is not None:
            flags.append(flag)
    score = sum(f.contribution for f in flags)
    return AnomalyResult(flags=tuple(flags), risk_score=score, risk_level=risk_level_for(score, cfg))
