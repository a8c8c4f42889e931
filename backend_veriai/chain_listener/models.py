"""
Data models for chain listener output.

Normalized rating-contract events and the JobRequest the watcher publishes
to the job queue channel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

EVENT_RATING_SUBMITTED = "RatingSubmitted"
EVENT_RATING_UPDATED = "RatingUpdated"
EVENT_RATING_SLASHED = "RatingSlashed"
EVENT_TRUST_SCORE_UPDATED = "TrustScoreUpdated"

REASON_BY_EVENT = {
    EVENT_RATING_SUBMITTED: "rating_submitted",
    EVENT_RATING_UPDATED: "rating_updated",
    EVENT_RATING_SLASHED: "rating_slashed",
    EVENT_TRUST_SCORE_UPDATED: "trust_score_updated",
}

REASON_MANUAL = "manual_request"


def normalize_subject_id(value: Any) -> str:
    """On-chain ids arrive as ints, decimal strings or hex strings; key them as decimal strings."""
    if isinstance(value, bool):
        raise ValueError("subject id must not be a boolean")
    if isinstance(value, int):
        return str(value)
    s = str(value).strip()
    if not s:
        raise ValueError("subject id is empty")
    if s.lower().startswith("0x"):
        return str(int(s, 16))
    return str(int(s)) if s.isdigit() else s


@dataclass(frozen=True)
class ChainEvent:
    """
    One decoded rating-contract event.

    ``slug`` is only set by RatingSubmitted; other events carry just the
    numeric subject id and need the SubjectIndex to resolve.
    """

    name: str
    subject_id: str
    slug: str | None = None
    args: dict[str, Any] = field(default_factory=dict)
    tx_hash: str | None = None

    @property
    def reason(self) -> str:
        return REASON_BY_EVENT[self.name]

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> "ChainEvent":
        """
        Build from ``{"event": name, "args": {...}, "txHash": ...}``.

        Raises ValueError for unknown event names and KeyError/ValueError for
        missing or malformed subject ids.
        """
        name = str(message.get("event") or "")
        if name not in REASON_BY_EVENT:
            raise ValueError(f"unknown event {name!r}")
        args = message.get("args") or {}
        if not isinstance(args, dict):
            raise ValueError("event args must be an object")
        raw_id = next(
            (args[k] for k in ("subjectId", "modelId", "subject_id") if args.get(k) is not None),
            None,
        )
        if raw_id is None:
            raise KeyError("subjectId")
        slug = args.get("slug") if name == EVENT_RATING_SUBMITTED else None
        slug = str(slug).strip() if slug else None
        return cls(
            name=name,
            subject_id=normalize_subject_id(raw_id),
            slug=slug or None,
            args=args,
            tx_hash=message.get("txHash") or message.get("tx_hash"),
        )


@dataclass(frozen=True)
class JobRequest:
    """What the watcher publishes to the channel: evaluate ``subject`` because of ``reason``."""

    subject: str
    reason: str
