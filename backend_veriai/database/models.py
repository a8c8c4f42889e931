"""
Domain models for database entities.

Insight history, trust snapshots, security reports and the evaluation cache.
Used by the Database facade; no ORM coupling so backends stay swappable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

EVALUATION_TYPE_AUTOMATED = "automated"


@dataclass
class InsightRecord:
    """Stored trust insight (append-only)."""

    id: int | None
    subject: str
    veracity: str
    risk_level: str
    confidence: float
    source: str
    """llm | fallback"""
    insight: dict[str, Any]
    """Full serialized TrustInsight."""
    created_at: int
    """Unix timestamp (seconds)."""


@dataclass
class TrustSnapshotRecord:
    """Point-in-time copy of on-chain aggregate stats (append-only)."""

    id: int | None
    subject: str
    trust_score: float
    stats: dict[str, Any]
    created_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject,
            "trust_score": self.trust_score,
            "stats": self.stats,
            "created_at": self.created_at,
        }


@dataclass
class SecurityReportRecord:
    """Stored red-team report, linked to the insight it fed into."""

    id: int | None
    subject: str
    insight_id: int | None
    risk_level: str
    report: dict[str, Any]
    created_at: int


@dataclass
class CacheEntry:
    """
    Cached evaluation payload for (subject, task_type, evaluation_type).

    Replace-on-write; an entry whose cache_expiry <= now is a miss.
    """

    subject: str
    task_type: str
    payload: dict[str, Any]
    cache_expiry: int
    evaluation_type: str = EVALUATION_TYPE_AUTOMATED
    updated_at: int | None = None

    def is_live(self, now: int) -> bool:
        return self.cache_expiry > now

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "task_type": self.task_type,
            "evaluation_type": self.evaluation_type,
            "payload": self.payload,
            "cache_expiry": self.cache_expiry,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class HistoricalData:
    """Recent insights (newest first) and trust-score snapshots for one subject."""

    recent_insights: tuple[dict[str, Any], ...] = ()
    trust_score_history: tuple[TrustSnapshotRecord, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "recent_insights": list(self.recent_insights),
            "trust_score_history": [s.to_dict() for s in self.trust_score_history],
        }
