"""
In-memory on-chain subject id -> slug index.

Learned from every RatingSubmitted event (the only event that carries both)
and optionally seeded at startup. Lookups for ids never seen return None.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from backend_veriai.chain_listener.models import normalize_subject_id
from backend_veriai.veriai_logging import get_logger

logger = get_logger(__name__)


class SubjectIndex:
    def __init__(self, seed: Mapping[object, str] | None = None) -> None:
        self._slugs: dict[str, str] = {}
        if seed:
            self.seed(seed.items())

    def __len__(self) -> int:
        return len(self._slugs)

    def __contains__(self, subject_id: object) -> bool:
        return self.resolve(subject_id) is not None

    def seed(self, pairs: Iterable[tuple[object, str]]) -> int:
        """Load known (subject_id, slug) pairs; returns how many were stored."""
        stored = 0
        for subject_id, slug in pairs:
            if self.learn(subject_id, slug):
                stored += 1
        return stored

    def learn(self, subject_id: object, slug: str) -> bool:
        slug = (slug or "").strip()
        if not slug:
            return False
        key = normalize_subject_id(subject_id)
        previous = self._slugs.get(key)
        if previous is not None and previous != slug:
            logger.warning("subject_index_slug_changed", subject_id=key, previous=previous, slug=slug)
        self._slugs[key] = slug
        return True

    def resolve(self, subject_id: object) -> str | None:
        try:
            key = normalize_subject_id(subject_id)
        except ValueError:
            return None
        return self._slugs.get(key)
