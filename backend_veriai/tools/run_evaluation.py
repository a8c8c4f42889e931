#!/usr/bin/env python3
"""
Manual trust evaluation for one subject.

Runs the full pipeline directly (no queue, no debounce) and prints the
outcome as JSON. Exit code 0 on success, 1 when the job failed.

Usage:
  python -m backend_veriai.tools.run_evaluation meta-llama/Llama-2-7b-hf
  python -m backend_veriai.tools.run_evaluation org/model --reason rating_updated
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from backend_veriai.agent_worker.pipeline import EvaluationOutcome
from backend_veriai.agent_worker.runtime import build_pipeline, build_store
from backend_veriai.chain_listener.models import REASON_MANUAL
from backend_veriai.config.env import print_veriai_startup
from backend_veriai.config.settings import get_settings
from backend_veriai.veriai_logging import get_logger

logger = get_logger(__name__)


async def evaluate(subject: str, reason: str = REASON_MANUAL) -> EvaluationOutcome:
    settings = get_settings()
    pipeline = build_pipeline(settings, build_store(settings))
    return await pipeline.run_evaluation(subject, reason)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run one trust evaluation and print the outcome JSON.")
    parser.add_argument("subject", help="Model slug, e.g. org/model")
    parser.add_argument("--reason", default=REASON_MANUAL, help=f"Job reason (default: {REASON_MANUAL})")
    args = parser.parse_args(argv)

    subject = args.subject.strip()
    if not subject:
        parser.error("subject must be non-empty")

    print_veriai_startup("run_evaluation")
    outcome = asyncio.run(evaluate(subject, args.reason))
    print(json.dumps(outcome.to_dict(), indent=2, default=str))
    return 0 if outcome.success else 1


if __name__ == "__main__":
    sys.exit(main())
