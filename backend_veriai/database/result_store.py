"""
Async ResultStore over the sync Database facade.

Every call runs the blocking SQLite work in the default executor so the
event loop never blocks. Writes: insights, snapshots and security reports
are appended; the evaluation cache is replaced on write with a TTL. Reads:
latest insight, bounded newest-first history, cache lookup (expired entries
are misses) and the two cached-evaluation query helpers.
"""

from __future__ import annotations

import asyncio
import functools
from typing import Any, Callable, TypeVar

from backend_veriai.core.exceptions import PersistenceError
from backend_veriai.database.database import Database
from backend_veriai.database.models import (
    CacheEntry,
    HistoricalData,
    InsightRecord,
    TrustSnapshotRecord,
)
from backend_veriai.insights.models import TrustInsight
from backend_veriai.sources.models import ModelStats, SecurityReport
from backend_veriai.veriai_logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_CACHE_TTL_SEC = 24 * 3600
HISTORY_INSIGHT_LIMIT = 10
HISTORY_SNAPSHOT_LIMIT = 20


def _payload_float(payload: dict[str, Any], key: str) -> float | None:
    value = payload.get(key)
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class ResultStore:
    def __init__(self, db: Database, *, cache_ttl_sec: int = DEFAULT_CACHE_TTL_SEC) -> None:
        self._db = db
        self._cache_ttl_sec = cache_ttl_sec

    @property
    def database(self) -> Database:
        return self._db

    async def _run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))

    async def _write(self, op: str, subject: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await self._run(fn, *args, **kwargs)
        except Exception as e:
            raise PersistenceError(f"{op} failed: {e}", subject=subject) from e

    # --- Writes ---

    async def record_insight(self, insight: TrustInsight) -> int:
        """Append the insight; returns its id. Raises PersistenceError."""
        insight_id = await self._write(
            "record_insight", insight.subject, self._db.insert_insight, insight.subject, insight.to_dict()
        )
        logger.info(
            "store_insight_recorded",
            subject=insight.subject,
            insight_id=insight_id,
            risk_level=insight.risk_level,
            source=insight.source,
        )
        return insight_id

    async def record_snapshot(self, subject: str, stats: ModelStats) -> int:
        return await self._write(
            "record_snapshot", subject, self._db.insert_snapshot, subject, stats.trust_score, stats.to_dict()
        )

    async def record_security_report(
        self,
        subject: str,
        report: SecurityReport,
        insight_id: int | None = None,
    ) -> int:
        return await self._write(
            "record_security_report",
            subject,
            self._db.insert_security_report,
            subject,
            report.to_dict(),
            insight_id=insight_id,
        )

    async def upsert_cache(self, subject: str, task_type: str, payload: dict[str, Any]) -> CacheEntry:
        """Replace the automated cache entry with expiry now + TTL."""
        return await self._write(
            "upsert_cache",
            subject,
            self._db.upsert_cache,
            subject,
            task_type,
            payload,
            ttl_sec=self._cache_ttl_sec,
        )

    # --- Reads ---

    async def lookup_cache(self, subject: str, task_type: str) -> CacheEntry | None:
        """Live entry or None; an entry with cache_expiry <= now is a miss."""
        return await self._run(self._db.lookup_cache, subject, task_type)

    async def latest_insight(self, subject: str) -> TrustInsight | None:
        records = await self._run(self._db.get_insights, subject, limit=1)
        return TrustInsight.from_dict(records[0].insight) if records else None

    async def insight_history(self, subject: str, limit: int = HISTORY_INSIGHT_LIMIT) -> list[InsightRecord]:
        """Newest first, at most ``limit`` records."""
        return await self._run(self._db.get_insights, subject, limit=max(0, limit))

    async def trust_score_history(
        self, subject: str, limit: int = HISTORY_SNAPSHOT_LIMIT
    ) -> list[TrustSnapshotRecord]:
        return await self._run(self._db.get_snapshots, subject, limit=max(0, limit))

    async def historical(self, subject: str) -> HistoricalData:
        """Recent insights and snapshots for the synthesis prompt."""
        insights = await self.insight_history(subject, HISTORY_INSIGHT_LIMIT)
        snapshots = await self.trust_score_history(subject, HISTORY_SNAPSHOT_LIMIT)
        return HistoricalData(
            recent_insights=tuple(
                {"id": r.id, "created_at": r.created_at, **r.insight} for r in insights
            ),
            trust_score_history=tuple(snapshots),
        )

    async def top_by_subject_score(self, task_type: str, n: int = 10) -> list[CacheEntry]:
        """Completed, unexpired entries for ``task_type`` sorted by payload score, highest first."""
        entries = await self._run(self._db.live_cache_entries, task_type=task_type)
        completed = [
            e for e in entries
            if e.payload.get("status") == "completed" and _payload_float(e.payload, "score") is not None
        ]
        completed.sort(key=lambda e: (-(_payload_float(e.payload, "score") or 0.0), e.subject))
        return completed[: max(0, n)]

    async def search_by_min_accuracy(
        self,
        min_accuracy: float,
        task_type: str | None = None,
    ) -> list[CacheEntry]:
        """Completed, unexpired entries with payload accuracy >= min_accuracy, most accurate first."""
        entries = await self._run(self._db.live_cache_entries, task_type=task_type)
        matches = [
            e for e in entries
            if e.payload.get("status") == "completed"
            and (_payload_float(e.payload, "accuracy") or -1.0) >= min_accuracy
        ]
        matches.sort(key=lambda e: (-(_payload_float(e.payload, "accuracy") or 0.0), e.subject))
        return matches
