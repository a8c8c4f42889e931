"""
Database abstraction layer for trust insights, snapshots, security reports and the evaluation cache.

SQLite backend behind an abstract interface so it can be swapped for another
store. Insights, snapshots and security reports are append-only; the cache is
replace-on-write keyed by (subject, task_type, evaluation_type). Expiry is
decided by the caller at read time; nothing here deletes expired rows.
"""

from __future__ import annotations

import json
import sqlite3
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from backend_veriai.database.models import (
    EVALUATION_TYPE_AUTOMATED,
    CacheEntry,
    InsightRecord,
    SecurityReportRecord,
    TrustSnapshotRecord,
)
from backend_veriai.veriai_logging import get_logger

logger = get_logger(__name__)

# -----------------------------------------------------------------------------
# Schema (SQLite)
# -----------------------------------------------------------------------------

SCHEMA_TRUST_INSIGHTS = """
CREATE TABLE IF NOT EXISTS trust_insights (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject TEXT NOT NULL,
    veracity TEXT NOT NULL,
    risk_level TEXT NOT NULL,
    confidence REAL NOT NULL,
    source TEXT NOT NULL,
    insight_json TEXT NOT NULL,
    created_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS ix_trust_insights_subject_created ON trust_insights(subject, created_at);
"""

SCHEMA_TRUST_SNAPSHOTS = """
CREATE TABLE IF NOT EXISTS trust_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject TEXT NOT NULL,
    trust_score REAL NOT NULL,
    stats_json TEXT NOT NULL,
    created_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS ix_trust_snapshots_subject_created ON trust_snapshots(subject, created_at);
"""

SCHEMA_SECURITY_REPORTS = """
CREATE TABLE IF NOT EXISTS security_reports (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject TEXT NOT NULL,
    insight_id INTEGER,
    risk_level TEXT NOT NULL,
    report_json TEXT NOT NULL,
    created_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS ix_security_reports_subject ON security_reports(subject);
"""

SCHEMA_EVALUATION_CACHE = """
CREATE TABLE IF NOT EXISTS evaluation_cache (
    subject TEXT NOT NULL,
    task_type TEXT NOT NULL,
    evaluation_type TEXT NOT NULL,
    payload_json TEXT NOT NULL,
    cache_expiry INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    UNIQUE(subject, task_type, evaluation_type)
);
CREATE INDEX IF NOT EXISTS ix_evaluation_cache_task_expiry ON evaluation_cache(task_type, cache_expiry);
"""


# -----------------------------------------------------------------------------
# Abstract backend
# -----------------------------------------------------------------------------


class DatabaseBackend(ABC):
    """Abstract interface for persistence; SQL and placeholders are backend-specific."""

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        ...

    @abstractmethod
    def insert_insight(
        self,
        subject: str,
        veracity: str,
        risk_level: str,
        confidence: float,
        source: str,
        insight_json: str,
        created_at: int,
    ) -> int:
        """Append one insight. Returns row id."""
        ...

    @abstractmethod
    def get_insights(self, subject: str, *, limit: int = 10) -> list[InsightRecord]:
        """Return insights for a subject, newest first."""
        ...

    @abstractmethod
    def insert_snapshot(self, subject: str, trust_score: float, stats_json: str, created_at: int) -> int:
        ...

    @abstractmethod
    def get_snapshots(self, subject: str, *, limit: int = 20) -> list[TrustSnapshotRecord]:
        """Return trust snapshots for a subject, newest first."""
        ...

    @abstractmethod
    def insert_security_report(
        self,
        subject: str,
        insight_id: int | None,
        risk_level: str,
        report_json: str,
        created_at: int,
    ) -> int:
        ...

    @abstractmethod
    def get_security_reports(self, subject: str, *, limit: int = 10) -> list[SecurityReportRecord]:
        ...

    @abstractmethod
    def upsert_cache_entry(
        self,
        subject: str,
        task_type: str,
        evaluation_type: str,
        payload_json: str,
        cache_expiry: int,
        updated_at: int,
    ) -> None:
        """Insert or replace the single cache row for (subject, task_type, evaluation_type)."""
        ...

    @abstractmethod
    def get_cache_entry(self, subject: str, task_type: str, evaluation_type: str) -> CacheEntry | None:
        """Return the cache row regardless of expiry, or None."""
        ...

    @abstractmethod
    def get_live_cache_entries(
        self,
        *,
        now: int,
        evaluation_type: str,
        task_type: str | None = None,
    ) -> list[CacheEntry]:
        """Return cache rows with cache_expiry > now, optionally for one task type."""
        ...


# -----------------------------------------------------------------------------
# SQLite backend
# -----------------------------------------------------------------------------


def _loads(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("database_json_decode_failed", preview=raw[:80])
        return {}
    return value if isinstance(value, dict) else {}


class SQLiteBackend(DatabaseBackend):
    """SQLite implementation; single file, one connection per operation."""

    def __init__(self, path: str | Path, *, timeout_sec: float = 5.0) -> None:
        self._path = Path(path)
        self._timeout_sec = timeout_sec

    def _connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._path), timeout=self._timeout_sec)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        conn = self._connect()
        try:
            cur = conn.cursor()
            yield cur
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        with self._cursor() as cur:
            for stmt in (
                SCHEMA_TRUST_INSIGHTS,
                SCHEMA_TRUST_SNAPSHOTS,
                SCHEMA_SECURITY_REPORTS,
                SCHEMA_EVALUATION_CACHE,
            ):
                cur.executescript(stmt)

    def insert_insight(
        self,
        subject: str,
        veracity: str,
        risk_level: str,
        confidence: float,
        source: str,
        insight_json: str,
        created_at: int,
    ) -> int:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO trust_insights (subject, veracity, risk_level, confidence, source, insight_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (subject, veracity, risk_level, confidence, source, insight_json, created_at),
            )
            return cur.lastrowid or 0

    def get_insights(self, subject: str, *, limit: int = 10) -> list[InsightRecord]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT id, subject, veracity, risk_level, confidence, source, insight_json, created_at
                FROM trust_insights WHERE subject = ?
                ORDER BY created_at DESC, id DESC LIMIT ?
                """,
                (subject, limit),
            )
            rows = cur.fetchall()
        return [
            InsightRecord(
                id=row["id"],
                subject=row["subject"],
                veracity=row["veracity"],
                risk_level=row["risk_level"],
                confidence=row["confidence"],
                source=row["source"],
                insight=_loads(row["insight_json"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def insert_snapshot(self, subject: str, trust_score: float, stats_json: str, created_at: int) -> int:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO trust_snapshots (subject, trust_score, stats_json, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (subject, trust_score, stats_json, created_at),
            )
            return cur.lastrowid or 0

    def get_snapshots(self, subject: str, *, limit: int = 20) -> list[TrustSnapshotRecord]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT id, subject, trust_score, stats_json, created_at
                FROM trust_snapshots WHERE subject = ?
                ORDER BY created_at DESC, id DESC LIMIT ?
                """,
                (subject, limit),
            )
            rows = cur.fetchall()
        return [
            TrustSnapshotRecord(
                id=row["id"],
                subject=row["subject"],
                trust_score=row["trust_score"],
                stats=_loads(row["stats_json"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def insert_security_report(
        self,
        subject: str,
        insight_id: int | None,
        risk_level: str,
        report_json: str,
        created_at: int,
    ) -> int:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO security_reports (subject, insight_id, risk_level, report_json, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (subject, insight_id, risk_level, report_json, created_at),
            )
            return cur.lastrowid or 0

    def get_security_reports(self, subject: str, *, limit: int = 10) -> list[SecurityReportRecord]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT id, subject, insight_id, risk_level, report_json, created_at
                FROM security_reports WHERE subject = ?
                ORDER BY created_at DESC, id DESC LIMIT ?
                """,
                (subject, limit),
            )
            rows = cur.fetchall()
        return [
            SecurityReportRecord(
                id=row["id"],
                subject=row["subject"],
                insight_id=row["insight_id"],
                risk_level=row["risk_level"],
                report=_loads(row["report_json"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def upsert_cache_entry(
        self,
        subject: str,
        task_type: str,
        evaluation_type: str,
        payload_json: str,
        cache_expiry: int,
        updated_at: int,
    ) -> None:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO evaluation_cache (subject, task_type, evaluation_type, payload_json, cache_expiry, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(subject, task_type, evaluation_type) DO UPDATE SET
                    payload_json = excluded.payload_json,
                    cache_expiry = excluded.cache_expiry,
                    updated_at = excluded.updated_at
                """,
                (subject, task_type, evaluation_type, payload_json, cache_expiry, updated_at),
            )

    @staticmethod
    def _cache_row(row: sqlite3.Row) -> CacheEntry:
        return CacheEntry(
            subject=row["subject"],
            task_type=row["task_type"],
            evaluation_type=row["evaluation_type"],
            payload=_loads(row["payload_json"]),
            cache_expiry=row["cache_expiry"],
            updated_at=row["updated_at"],
        )

    def get_cache_entry(self, subject: str, task_type: str, evaluation_type: str) -> CacheEntry | None:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT subject, task_type, evaluation_type, payload_json, cache_expiry, updated_at
                FROM evaluation_cache WHERE subject = ? AND task_type = ? AND evaluation_type = ?
                """,
                (subject, task_type, evaluation_type),
            )
            row = cur.fetchone()
        return self._cache_row(row) if row is not None else None

    def get_live_cache_entries(
        self,
        *,
        now: int,
        evaluation_type: str,
        task_type: str | None = None,
    ) -> list[CacheEntry]:
        sql = """
            SELECT subject, task_type, evaluation_type, payload_json, cache_expiry, updated_at
            FROM evaluation_cache WHERE evaluation_type = ? AND cache_expiry > ?
        """
        params: list[Any] = [evaluation_type, now]
        if task_type is not None:
            sql += " AND task_type = ?"
            params.append(task_type)
        with self._cursor() as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()
        return [self._cache_row(row) for row in rows]


# -----------------------------------------------------------------------------
# Database facade: single entrypoint; backend is swappable.
# -----------------------------------------------------------------------------


class Database:
    """
    Database abstraction: insight history, trust snapshots, security reports, evaluation cache.

    Serializes dict payloads to JSON and stamps timestamps; ``clock`` returns
    Unix seconds and is injectable for expiry tests.
    """

    def __init__(self, backend: DatabaseBackend, *, clock: Any = None) -> None:
        self._backend = backend
        self._clock = clock or time.time

    def now(self) -> int:
        return int(self._clock())

    def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        self._backend.ensure_schema()

    # --- Insights ---

    def insert_insight(
        self,
        subject: str,
        insight: dict[str, Any],
        *,
        created_at: int | None = None,
    ) -> int:
        """Append a serialized insight; summary columns are copied out for queries. Returns row id."""
        return self._backend.insert_insight(
            subject,
            str(insight.get("veracity") or "UNKNOWN"),
            str(insight.get("risk_level") or "LOW"),
            float(insight.get("confidence") or 0.0),
            str(insight.get("source") or "fallback"),
            json.dumps(insight, default=str),
            created_at if created_at is not None else self.now(),
        )

    def get_insights(self, subject: str, *, limit: int = 10) -> list[InsightRecord]:
        return self._backend.get_insights(subject, limit=limit)

    # --- Trust snapshots ---

    def insert_snapshot(
        self,
        subject: str,
        trust_score: float,
        stats: dict[str, Any],
        *,
        created_at: int | None = None,
    ) -> int:
        return self._backend.insert_snapshot(
            subject,
            trust_score,
            json.dumps(stats, default=str),
            created_at if created_at is not None else self.now(),
        )

    def get_snapshots(self, subject: str, *, limit: int = 20) -> list[TrustSnapshotRecord]:
        return self._backend.get_snapshots(subject, limit=limit)

    # --- Security reports ---

    def insert_security_report(
        self,
        subject: str,
        report: dict[str, Any],
        *,
        insight_id: int | None = None,
    ) -> int:
        return self._backend.insert_security_report(
            subject,
            insight_id,
            str(report.get("risk_level") or "UNKNOWN"),
            json.dumps(report, default=str),
            self.now(),
        )

    def get_security_reports(self, subject: str, *, limit: int = 10) -> list[SecurityReportRecord]:
        return self._backend.get_security_reports(subject, limit=limit)

    # --- Evaluation cache ---

    def upsert_cache(
        self,
        subject: str,
        task_type: str,
        payload: dict[str, Any],
        *,
        ttl_sec: int,
        evaluation_type: str = EVALUATION_TYPE_AUTOMATED,
    ) -> CacheEntry:
        """Replace the cache row with cache_expiry = now + ttl_sec. Returns the written entry."""
        now = self.now()
        expiry = now + int(ttl_sec)
        self._backend.upsert_cache_entry(
            subject, task_type, evaluation_type, json.dumps(payload, default=str), expiry, now
        )
        return CacheEntry(
            subject=subject,
            task_type=task_type,
            payload=payload,
            cache_expiry=expiry,
            evaluation_type=evaluation_type,
            updated_at=now,
        )

    def lookup_cache(
        self,
        subject: str,
        task_type: str,
        *,
        evaluation_type: str = EVALUATION_TYPE_AUTOMATED,
    ) -> CacheEntry | None:
        """Return the entry only while cache_expiry > now; expired rows are left in place."""
        entry = self._backend.get_cache_entry(subject, task_type, evaluation_type)
        if entry is None or not entry.is_live(self.now()):
            return None
        return entry

    def live_cache_entries(
        self,
        *,
        task_type: str | None = None,
        evaluation_type: str = EVALUATION_TYPE_AUTOMATED,
    ) -> list[CacheEntry]:
        return self._backend.get_live_cache_entries(
            now=self.now(), evaluation_type=evaluation_type, task_type=task_type
        )


def get_database(path: str | Path | None = None, *, clock: Any = None) -> Database:
    """
    Return a SQLite-backed Database with the schema ensured.

    path: SQLite file (e.g. "data/veriai.db"). Default: VERIAI_DB_PATH or "veriai.db".
    """
    if path is None:
        from backend_veriai.config.env import get_db_path

        path = get_db_path()
    backend = SQLiteBackend(path)
    db = Database(backend, clock=clock)
    db.ensure_schema()
    return db
