"""
Pytest fixtures for VeriAI tests. Uses a temporary SQLite DB and a fake clock
so cache expiry and rating recency are deterministic.
"""

from __future__ import annotations

from typing import Any

import pytest

from backend_veriai.database import ResultStore, get_database
from backend_veriai.sources.models import (
    BenchmarkResult,
    ModelCard,
    ModelStats,
    RatingEvent,
    SecurityReport,
    SourceResult,
)

NOW = 1_700_000_000
SUBJECT = "acme/sentiment-bert"


class FakeClock:
    """Callable clock returning a settable Unix timestamp."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubReader:
    """Reader returning a fixed SourceResult and recording the subjects asked for."""

    def __init__(self, result: SourceResult) -> None:
        self.result = result
        self.calls: list[str] = []

    async def read(self, subject: str) -> SourceResult:
        self.calls.append(subject)
        return self.result


class StubProber:
    def __init__(self, report: SecurityReport | None = None) -> None:
        self.report = report
        self.requests: list[Any] = []

    async def probe(self, subject: str, request: Any) -> SecurityReport:
        self.requests.append(request)
        return self.report or SecurityReport.unavailable(subject, "not configured")


class StubLanguageModel:
    """Returns a canned response, or raises ``error`` when set."""

    def __init__(self, response: str = "", error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.prompts: list[tuple[str, str]] = []

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.prompts.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return self.response


class RecordingNotifier:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.sent: list[Any] = []

    async def notify(self, insight: Any) -> bool:
        if self.error is not None:
            raise self.error
        self.sent.append(insight)
        return True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db(tmp_path, clock):
    """Fresh SQLite database in tmp_path with the schema ensured."""
    return get_database(tmp_path / "veriai.db", clock=clock)


@pytest.fixture
def store(db) -> ResultStore:
    return ResultStore(db)


@pytest.fixture
def make_rating():
    """Factory for RatingEvent with sensible defaults (old, established wallet)."""

    def _make(
        user: str = "0xaaaa000000000000000000000000000000000001",
        *,
        score: int = 4,
        stake: float = 1.0,
        age_sec: int = 30 * 86400,
        wallet_age_sec: int | None = 365 * 86400,
        slashed: bool = False,
        subject: str = SUBJECT,
    ) -> RatingEvent:
        return RatingEvent(
            subject=subject,
            user=user,
            score=score,
            metadata_hash="QmHash",
            stake=stake,
            timestamp=NOW - age_sec,
            slashed=slashed,
            weight=stake,
            wallet_first_seen=None if wallet_age_sec is None else NOW - wallet_age_sec,
        )

    return _make


@pytest.fixture
def stats() -> ModelStats:
    return ModelStats(trust_score=72.0, total_ratings=6, active_ratings=5, average_score=3.8, total_staked=10.0)


@pytest.fixture
def model_card() -> ModelCard:
    return ModelCard(model_id=SUBJECT, author="acme", pipeline_tag="text-classification", claimed_accuracy=0.90)


@pytest.fixture
def benchmark() -> BenchmarkResult:
    return BenchmarkResult(measured_accuracy=0.78, samples_tested=500)
