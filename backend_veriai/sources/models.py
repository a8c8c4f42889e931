"""
Data models for Source Reader output.

Normalized payloads from the chain gateway (stats, ratings), the model hub
(model card), the benchmark service and the red-team security prober. Each
reader returns a SourceResult so the aggregator can isolate failures per
source without exceptions crossing the fan-out.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

T = TypeVar("T")


def _first_present(data: dict[str, Any], *keys: str) -> Any:
    """Return the first key present with a non-None value (accepts camelCase and snake_case)."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _to_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class SourceResult(Generic[T]):
    """Success flag plus payload (or the reader's default) and an optional error."""

    success: bool
    payload: T
    error: str | None = None

    @classmethod
    def ok(cls, payload: T) -> "SourceResult[T]":
        return cls(success=True, payload=payload)

    @classmethod
    def failed(cls, error: str, default: T) -> "SourceResult[T]":
        return cls(success=False, payload=default, error=error)


@dataclass(frozen=True)
class RatingEvent:
    """
    One on-chain rating for a subject.

    Immutable once observed; the pipeline only reads it. Stake is in native
    token units (already converted from wei by the chain gateway).
    """

    subject: str
    user: str
    score: int
    """Star rating 0-5."""
    metadata_hash: str
    stake: float
    timestamp: int
    """Unix timestamp (seconds) of the rating transaction."""
    slashed: bool = False
    weight: float = 0.0
    index: int | None = None
    tx_hash: str | None = None
    wallet_first_seen: int | None = None
    """Unix timestamp the rater's wallet first appeared on-chain, when the gateway knows it."""

    @property
    def wallet_age_reference(self) -> int:
        """First-seen time of the wallet; falls back to the rating timestamp."""
        return self.wallet_first_seen if self.wallet_first_seen is not None else self.timestamp

    @property
    def timestamp_iso(self) -> str:
        """ISO-8601 UTC time, or "" when the timestamp is outside the platform range."""
        try:
            return datetime.fromtimestamp(self.timestamp, tz=timezone.utc).isoformat()
        except (ValueError, OverflowError, OSError):
            return ""

    @classmethod
    def from_payload(cls, subject: str, item: dict[str, Any], index: int | None = None) -> "RatingEvent":
        """Build from one chain-gateway rating item; raises KeyError/TypeError on malformed items."""
        return cls(
            subject=subject,
            user=str(item["user"]),
            score=int(item["score"]),
            metadata_hash=str(_first_present(item, "metadataHash", "metadata_hash") or ""),
            stake=_to_float(item.get("stake")),
            timestamp=_to_int(item.get("timestamp")),
            slashed=bool(item.get("slashed", False)),
            weight=_to_float(item.get("weight")),
            index=_to_int(item.get("index"), index) if item.get("index") is not None else index,
            tx_hash=_first_present(item, "txHash", "tx_hash"),
            wallet_first_seen=(
                _to_int(_first_present(item, "walletFirstSeen", "wallet_first_seen"))
                if _first_present(item, "walletFirstSeen", "wallet_first_seen") is not None
                else None
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["timestamp_iso"] = self.timestamp_iso
        return out


@dataclass(frozen=True)
class ModelStats:
    """Aggregate on-chain stats for a subject."""

    trust_score: float
    """0-100."""
    total_ratings: int
    active_ratings: int
    average_score: float
    total_staked: float

    @classmethod
    def empty(cls) -> "ModelStats":
        return cls(trust_score=0.0, total_ratings=0, active_ratings=0, average_score=0.0, total_staked=0.0)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "ModelStats":
        return cls(
            trust_score=_to_float(_first_present(data, "trustScore", "trust_score")),
            total_ratings=_to_int(_first_present(data, "totalRatings", "total_ratings")),
            active_ratings=_to_int(_first_present(data, "activeRatings", "active_ratings")),
            average_score=_to_float(_first_present(data, "averageScore", "average_score")),
            total_staked=_to_float(_first_present(data, "totalStaked", "total_staked")),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ModelCard:
    """Self-reported model metadata from the model hub."""

    model_id: str
    author: str | None = None
    downloads: int = 0
    likes: int = 0
    tags: tuple[str, ...] = ()
    pipeline_tag: str | None = None
    library_name: str | None = None
    created_at: str | None = None
    last_modified: str | None = None
    datasets: tuple[str, ...] = ()
    claimed_accuracy: float | None = None
    """Direct accuracy claim when the hub exposes one."""
    card_data: dict[str, Any] = field(default_factory=dict)
    model_index: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_hub_payload(cls, data: dict[str, Any]) -> "ModelCard":
        card_data = data.get("cardData") or data.get("card_data") or {}
        if not isinstance(card_data, dict):
            card_data = {}
        datasets = card_data.get("datasets") or data.get("datasets") or []
        if isinstance(datasets, str):
            datasets = [datasets]
        model_index = data.get("model-index") or card_data.get("model-index") or []
        claimed = _first_present(data, "claimedAccuracy", "claimed_accuracy")
        return cls(
            model_id=str(_first_present(data, "id", "modelId", "model_id") or ""),
            author=data.get("author"),
            downloads=_to_int(data.get("downloads")),
            likes=_to_int(data.get("likes")),
            tags=tuple(str(t) for t in (data.get("tags") or [])),
            pipeline_tag=_first_present(data, "pipeline_tag", "pipelineTag"),
            library_name=data.get("library_name"),
            created_at=_first_present(data, "createdAt", "created_at"),
            last_modified=_first_present(data, "lastModified", "last_modified"),
            datasets=tuple(str(d) for d in datasets),
            claimed_accuracy=_to_float(claimed) if claimed is not None else None,
            card_data=card_data,
            model_index=model_index if isinstance(model_index, list) else [],
        )

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["tags"] = list(self.tags)
        out["datasets"] = list(self.datasets)
        return out


@dataclass(frozen=True)
class BenchmarkResult:
    """Independently measured benchmark outcome for a subject."""

    measured_accuracy: float | None = None
    """Fraction 0-1 when the service reports it directly."""
    samples_tested: int = 0
    task_type: str | None = None
    evaluated_at: str | None = None
    status: str | None = None
    metrics: dict[str, Any] = field(default_factory=dict)
    accuracy: float | None = None
    """Legacy top-level accuracy field some evaluations carry."""

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "BenchmarkResult":
        metrics = data.get("metrics") or {}
        if not isinstance(metrics, dict):
            metrics = {}
        measured = _first_present(data, "measuredAccuracy", "measured_accuracy")
        accuracy = data.get("accuracy")
        return cls(
            measured_accuracy=_to_float(measured) if measured is not None else None,
            samples_tested=_to_int(
                _first_present(data, "samplesTested", "samples_tested")
                or metrics.get("samplesTested")
            ),
            task_type=_first_present(data, "taskType", "task_type"),
            evaluated_at=_first_present(data, "evaluatedAt", "evaluated_at"),
            status=data.get("status"),
            metrics=metrics,
            accuracy=_to_float(accuracy) if accuracy is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SecurityTest:
    """One red-team probe outcome (PASS | FAIL | ERROR)."""

    name: str
    status: str
    detail: str = ""
    evidence: dict[str, Any] = field(default_factory=dict)

    @property
    def failures(self) -> list[dict[str, Any]]:
        failures = self.evidence.get("failures") or []
        return failures if isinstance(failures, list) else []

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "SecurityTest":
        evidence = data.get("evidence") or {}
        return cls(
            name=str(data.get("name") or "unnamed"),
            status=str(data.get("status") or "ERROR").upper(),
            detail=str(data.get("detail") or ""),
            evidence=evidence if isinstance(evidence, dict) else {"raw": evidence},
        )


@dataclass(frozen=True)
class SecurityMetadata:
    tests_run: int = 0
    tests_passed: int = 0
    tests_failed: int = 0
    tests_errored: int = 0


@dataclass(frozen=True)
class ProbeRequest:
    """Context handed to the security prober for one subject."""

    model_card: ModelCard | None
    ratings: tuple[RatingEvent, ...]
    baseline_trust_score: float
    """0-1 (on-chain trust score / 100)."""
    name: str

    def to_payload(self, subject: str) -> dict[str, Any]:
        return {
            "modelId": subject,
            "modelName": self.name,
            "modelCard": self.model_card.to_dict() if self.model_card else None,
            "chainRatings": [r.to_dict() for r in self.ratings],
            "baselineTrustScore": self.baseline_trust_score,
        }


@dataclass(frozen=True)
class SecurityReport:
    """
    Red-team analysis for one subject.

    Appended verbatim to the synthesis prompt and to TrustInsight.red_team.
    """

    subject: str
    risk_level: str
    tests: tuple[SecurityTest, ...] = ()
    verdict: dict[str, Any] = field(default_factory=dict)
    metadata: SecurityMetadata = field(default_factory=SecurityMetadata)
    started_at: str | None = None
    finished_at: str | None = None
    available: bool = True

    @property
    def verdict_summary(self) -> str:
        return str(self.verdict.get("summary") or "")

    @classmethod
    def unavailable(cls, subject: str, reason: str) -> "SecurityReport":
        """Report used when the prober is not configured or failed; never blocks a job."""
        return cls(
            subject=subject,
            risk_level="UNKNOWN",
            verdict={"summary": f"Security probe unavailable: {reason}"},
            available=False,
        )

    @classmethod
    def from_payload(cls, subject: str, data: dict[str, Any]) -> "SecurityReport":
        tests = tuple(
            SecurityTest.from_payload(t) for t in (data.get("tests") or []) if isinstance(t, dict)
        )
        meta = data.get("metadata") or {}
        verdict = data.get("verdict") or {}
        return cls(
            subject=subject,
            risk_level=str(_first_present(data, "riskLevel", "risk_level") or "UNKNOWN").upper(),
            tests=tests,
            verdict=verdict if isinstance(verdict, dict) else {"summary": str(verdict)},
            metadata=SecurityMetadata(
                tests_run=_to_int(_first_present(meta, "testsRun", "tests_run"), len(tests)),
                tests_passed=_to_int(_first_present(meta, "testsPassed", "tests_passed")),
                tests_failed=_to_int(_first_present(meta, "testsFailed", "tests_failed")),
                tests_errored=_to_int(_first_present(meta, "testsErrored", "tests_errored")),
            ),
            started_at=_first_present(data, "startedAt", "started_at"),
            finished_at=_first_present(data, "finishedAt", "finished_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
