"""
Persistence layer: insight history, trust snapshots, security reports, evaluation cache.

SQLite via Database and get_database(); ResultStore is the async view used by
the pipeline and the read tools.
"""

from backend_veriai.database.database import (
    Database,
    DatabaseBackend,
    SQLiteBackend,
    get_database,
)
from backend_veriai.database.models import (
    CacheEntry,
    HistoricalData,
    InsightRecord,
    SecurityReportRecord,
    TrustSnapshotRecord,
)
from backend_veriai.database.result_store import ResultStore

__all__ = [
    "CacheEntry",
    "Database",
    "DatabaseBackend",
    "HistoricalData",
    "InsightRecord",
    "ResultStore",
    "SQLiteBackend",
    "SecurityReportRecord",
    "TrustSnapshotRecord",
    "get_database",
]
