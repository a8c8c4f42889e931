"""Source Readers: on-chain stats and ratings, model card, benchmark, security prober."""

from backend_veriai.sources.models import (
    BenchmarkResult,
    ModelCard,
    ModelStats,
    ProbeRequest,
    RatingEvent,
    SecurityReport,
    SecurityTest,
    SourceResult,
)
from backend_veriai.sources.readers import (
    HttpBenchmarkReader,
    HttpRatingsReader,
    HttpStatsReader,
    HuggingFaceModelCardReader,
)
from backend_veriai.sources.security_prober import HttpSecurityProber

__all__ = [
    "BenchmarkResult",
    "HttpBenchmarkReader",
    "HttpRatingsReader",
    "HttpSecurityProber",
    "HttpStatsReader",
    "HuggingFaceModelCardReader",
    "ModelCard",
    "ModelStats",
    "ProbeRequest",
    "RatingEvent",
    "SecurityReport",
    "SecurityTest",
    "SourceResult",
]
