#!/usr/bin/env python3
"""
Read helpers over the ResultStore: latest insight, history, cached rankings.

Usage:
  python -m backend_veriai.tools.insights latest org/model
  python -m backend_veriai.tools.insights history org/model --limit 5
  python -m backend_veriai.tools.insights snapshots org/model
  python -m backend_veriai.tools.insights cache org/model --task-type text-generation
  python -m backend_veriai.tools.insights top text-generation -n 10
  python -m backend_veriai.tools.insights search 0.85 [--task-type text-classification]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from backend_veriai.agent_worker.runtime import build_store
from backend_veriai.config.settings import get_settings
from backend_veriai.database.result_store import ResultStore


async def run_query(store: ResultStore, args: argparse.Namespace) -> Any:
    """Execute one read command; returns a JSON-serializable value."""
    if args.command == "latest":
        insight = await store.latest_insight(args.subject)
        return insight.to_dict() if insight else None
    if args.command == "history":
        records = await store.insight_history(args.subject, args.limit)
        return [{"id": r.id, "created_at": r.created_at, **r.insight} for r in records]
    if args.command == "snapshots":
        return [s.to_dict() for s in await store.trust_score_history(args.subject, args.limit)]
    if args.command == "cache":
        entry = await store.lookup_cache(args.subject, args.task_type)
        return entry.to_dict() if entry else None
    if args.command == "top":
        return [e.to_dict() for e in await store.top_by_subject_score(args.task_type, args.n)]
    if args.command == "search":
        return [e.to_dict() for e in await store.search_by_min_accuracy(args.min_accuracy, args.task_type)]
    raise ValueError(f"unknown command {args.command!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Query stored trust insights and the evaluation cache.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("latest", help="Latest insight for a subject")
    p.add_argument("subject")

    p = sub.add_parser("history", help="Insight history, newest first")
    p.add_argument("subject")
    p.add_argument("--limit", type=int, default=10)

    p = sub.add_parser("snapshots", help="Trust-score snapshots, newest first")
    p.add_argument("subject")
    p.add_argument("--limit", type=int, default=20)

    p = sub.add_parser("cache", help="Live cache entry for a subject")
    p.add_argument("subject")
    p.add_argument("--task-type", dest="task_type", default="general")

    p = sub.add_parser("top", help="Top subjects for a task type by cached score")
    p.add_argument("task_type")
    p.add_argument("-n", type=int, default=10)

    p = sub.add_parser("search", help="Cached subjects with accuracy >= MIN_ACCURACY")
    p.add_argument("min_accuracy", type=float)
    p.add_argument("--task-type", dest="task_type", default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    store = build_store(get_settings())
    result = asyncio.run(run_query(store, args))
    print(json.dumps(result, indent=2, default=str))
    return 0 if result not in (None, []) else 1


if __name__ == "__main__":
    sys.exit(main())
