"""
One JSON line per agent event.

Every line carries event_type, level, timestamp and the emitting module.
Lines written while an evaluation job runs also carry the job's subject and
job_id (see job_context), so the reader, aggregator and synthesizer output
of one job can be grepped together. LOG_FORMAT=console switches to the
structlog dev renderer.

This module must not import other backend_veriai modules; they all import it.
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)

# JSON output for production (LOG_FORMAT=json); human-readable for local
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()


def _add_timestamp(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Ensure timestamp is always present (ISO 8601)."""
    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _normalize_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Rename structlog 'event' to event_type for consistency; keep message if present."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "message" not in event_dict and "event_type" in event_dict:
        event_dict["message"] = str(event_dict["event_type"])
    return event_dict


def configure_structlog() -> None:
    """Configure structlog once at import: JSON, timestamp, level, event_type."""
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
        _normalize_event,
    ]
    if LOG_FORMAT == "json":
        shared_processors.append(structlog.processors.JSONRenderer(default=str))
    else:
        shared_processors.append(
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        )
    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.make_filtering_bound_logger(LOG_LEVEL_VALUE),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for the given module name.

        logger = get_logger(__name__)
        logger.info("pipeline_job_done", subject="org/model", risk_level="LOW")

    Output (JSON): {"event_type": "pipeline_job_done", "subject": "org/model",
    "risk_level": "LOW", "timestamp": "...", "level": "info", "logger": "module.name"}
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_subject(
    subject: str,
    *,
    reason: str | None = None,
    job_id: str | None = None,
) -> structlog.BoundLogger:
    """Logger for one evaluation job: subject plus the trigger reason and job id when known."""
    extra = {k: v for k, v in (("reason", reason), ("job_id", job_id)) if v is not None}
    return get_logger("backend_veriai").bind(subject=subject, **extra)


@contextmanager
def job_context(subject: str, job_id: str) -> Iterator[None]:
    """
    Bind ``subject`` and ``job_id`` into structlog contextvars for the block.

    Tasks spawned inside inherit the binding, so the concurrent source reads
    of a job log under its id.
    """
    with structlog.contextvars.bound_contextvars(subject=subject, job_id=job_id):
        yield
