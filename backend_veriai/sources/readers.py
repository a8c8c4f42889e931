"""
Source Readers: chain stats, chain ratings, model card, benchmark.

Each reader exposes ``async read(subject) -> SourceResult``. Transport, status
and shape errors are converted into ``SourceResult(success=False, error=...)``
so the aggregator can isolate failures per source; readers never raise.

HTTP adapters use httpx.AsyncClient with an explicit per-call timeout. Tests
inject an ``httpx.MockTransport`` through ``transport``.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from backend_veriai.core.exceptions import SourceReadError
from backend_veriai.sources.models import (
    BenchmarkResult,
    ModelCard,
    ModelStats,
    RatingEvent,
    SourceResult,
)
from backend_veriai.veriai_logging import get_logger

logger = get_logger(__name__)


class StatsReader(Protocol):
    async def read(self, subject: str) -> SourceResult[ModelStats]: ...


class RatingsReader(Protocol):
    async def read(self, subject: str) -> SourceResult[list[RatingEvent]]: ...


class ModelCardReader(Protocol):
    async def read(self, subject: str) -> SourceResult[ModelCard | None]: ...


class BenchmarkReader(Protocol):
    async def read(self, subject: str) -> SourceResult[BenchmarkResult | None]: ...


class _HttpJsonReader:
    """GET JSON from ``{base_url}{path}``; raise SourceReadError on any failure."""

    source_name = "http"

    def __init__(
        self,
        base_url: str,
        *,
        timeout_sec: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        if not base_url.strip():
            raise ValueError("base_url must be non-empty")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_sec
        self._transport = transport
        self._headers = headers or {}

    async def _get_json(self, path: str, subject: str) -> Any:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
                headers=self._headers,
            ) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as e:
            raise SourceReadError(
                self.source_name,
                f"HTTP {e.response.status_code} from {url}",
                subject=subject,
            ) from e
        except httpx.HTTPError as e:
            raise SourceReadError(self.source_name, f"{type(e).__name__}: {e}", subject=subject) from e
        except ValueError as e:
            raise SourceReadError(self.source_name, f"invalid JSON from {url}", subject=subject) from e


# Raised by the payload parsers when a field has an unexpected type
_SHAPE_ERRORS = (KeyError, TypeError, AttributeError, ValueError)


def _shape_message(e: Exception) -> str:
    return f"malformed payload: {type(e).__name__}: {e}"


def _log_failure(source: str, subject: str, error: str) -> None:
    logger.warning("source_read_failed", source=source, subject=subject, error=error)


class HttpStatsReader(_HttpJsonReader):
    """Aggregate on-chain stats via ``GET {gateway}/models/{subject}/stats``."""

    source_name = "stats"

    async def read(self, subject: str) -> SourceResult[ModelStats]:
        try:
            data = await self._get_json(f"/models/{subject}/stats", subject)
            if not isinstance(data, dict):
                raise SourceReadError(self.source_name, "stats payload is not an object", subject=subject)
            return SourceResult.ok(ModelStats.from_payload(data))
        except SourceReadError as e:
            _log_failure(self.source_name, subject, e.message)
            return SourceResult.failed(e.message, ModelStats.empty())
        except _SHAPE_ERRORS as e:
            msg = _shape_message(e)
            _log_failure(self.source_name, subject, msg)
            return SourceResult.failed(msg, ModelStats.empty())


class HttpRatingsReader(_HttpJsonReader):
    """All ratings for a subject via ``GET {gateway}/models/{subject}/ratings``."""

    source_name = "ratings"

    async def read(self, subject: str) -> SourceResult[list[RatingEvent]]:
        try:
            data = await self._get_json(f"/models/{subject}/ratings", subject)
            items = data.get("ratings") if isinstance(data, dict) else data
            if not isinstance(items, list):
                raise SourceReadError(self.source_name, "ratings payload is not a list", subject=subject)
            ratings: list[RatingEvent] = []
            for i, item in enumerate(items):
                if not isinstance(item, dict):
                    continue
                try:
                    ratings.append(RatingEvent.from_payload(subject, item, index=i))
                except (KeyError, TypeError, ValueError) as e:
                    logger.debug("ratings_item_skipped", subject=subject, index=i, error=str(e))
            return SourceResult.ok(ratings)
        except SourceReadError as e:
            _log_failure(self.source_name, subject, e.message)
            return SourceResult.failed(e.message, [])


class HuggingFaceModelCardReader(_HttpJsonReader):
    """Model metadata via ``GET {hf_api}/models/{subject}``."""

    source_name = "model_card"

    async def read(self, subject: str) -> SourceResult[ModelCard | None]:
        try:
            data = await self._get_json(f"/models/{subject}", subject)
            if not isinstance(data, dict):
                raise SourceReadError(self.source_name, "model card payload is not an object", subject=subject)
            return SourceResult.ok(ModelCard.from_hub_payload(data))
        except SourceReadError as e:
            _log_failure(self.source_name, subject, e.message)
            return SourceResult.failed(e.message, None)
        except _SHAPE_ERRORS as e:
            msg = _shape_message(e)
            _log_failure(self.source_name, subject, msg)
            return SourceResult.failed(msg, None)


class HttpBenchmarkReader(_HttpJsonReader):
    """
    Measured accuracy via ``GET {backend}/api/evaluation/{subject}``.

    A 404 means the subject has never been benchmarked: success with no payload.
    """

    source_name = "benchmark"

    async def read(self, subject: str) -> SourceResult[BenchmarkResult | None]:
        try:
            data = await self._get_json(f"/api/evaluation/{subject}", subject)
        except SourceReadError as e:
            cause = e.__cause__
            if isinstance(cause, httpx.HTTPStatusError) and cause.response.status_code == 404:
                logger.info("benchmark_not_found", subject=subject)
                return SourceResult.ok(None)
            _log_failure(self.source_name, subject, e.message)
            return SourceResult.failed(e.message, None)
        # Some deployments wrap the evaluation as {"evaluation": {...}}
        if isinstance(data, dict) and isinstance(data.get("evaluation"), dict):
            data = data["evaluation"]
        if not isinstance(data, dict):
            _log_failure(self.source_name, subject, "benchmark payload is not an object")
            return SourceResult.failed("benchmark payload is not an object", None)
        try:
            return SourceResult.ok(BenchmarkResult.from_payload(data))
        except _SHAPE_ERRORS as e:
            msg = _shape_message(e)
            _log_failure(self.source_name, subject, msg)
            return SourceResult.failed(msg, None)
