"""
Tests for the HTTP adapters: source readers, security prober and webhook notifier.

Every adapter gets an httpx.MockTransport; no network access.
"""

from __future__ import annotations

import json

import httpx
import pytest

from backend_veriai.alerts.webhook import WebhookNotifier, build_notification
from backend_veriai.insights.models import TrustInsight
from backend_veriai.sources.models import ProbeRequest
from backend_veriai.sources.readers import (
    HttpBenchmarkReader,
    HttpRatingsReader,
    HttpStatsReader,
    HuggingFaceModelCardReader,
)
from backend_veriai.sources.security_prober import HttpSecurityProber

SUBJECT = "acme/sentiment-bert"


def _transport(routes: dict[str, httpx.Response]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return routes.get(request.url.path, httpx.Response(404, json={"error": "not found"}))

    return httpx.MockTransport(handler)


def _failing_transport() -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_stats_reader_parses_camel_case():
    transport = _transport({
        f"/models/{SUBJECT}/stats": httpx.Response(200, json={
            "trustScore": 81.5, "totalRatings": 12, "activeRatings": 11, "averageScore": 4.2, "totalStaked": 3.5,
        }),
    })
    result = await HttpStatsReader("http://gateway", transport=transport).read(SUBJECT)
    assert result.success is True
    assert result.payload.trust_score == 81.5
    assert result.payload.total_ratings == 12


@pytest.mark.asyncio
async def test_stats_reader_failure_returns_empty_stats():
    transport = _transport({f"/models/{SUBJECT}/stats": httpx.Response(500, text="oops")})
    result = await HttpStatsReader("http://gateway", transport=transport).read(SUBJECT)
    assert result.success is False
    assert "HTTP 500" in result.error
    assert result.payload.total_ratings == 0


@pytest.mark.asyncio
async def test_ratings_reader_skips_malformed_items():
    transport = _transport({
        f"/models/{SUBJECT}/ratings": httpx.Response(200, json={"ratings": [
            {"user": "0xabc", "score": 5, "stake": "1.5", "timestamp": 1700000000, "metadataHash": "Qm1",
             "txHash": "0xtx"},
            {"score": 3},
            "not-an-object",
            {"user": "0xdef", "score": 2, "slashed": True, "walletFirstSeen": 1600000000},
        ]}),
    })
    result = await HttpRatingsReader("http://gateway", transport=transport).read(SUBJECT)
    assert result.success is True
    assert [r.user for r in result.payload] == ["0xabc", "0xdef"]
    first, second = result.payload
    assert first.stake == 1.5
    assert first.tx_hash == "0xtx"
    assert second.slashed is True
    assert second.wallet_first_seen == 1600000000


@pytest.mark.asyncio
async def test_ratings_reader_transport_error_returns_empty_list():
    result = await HttpRatingsReader("http://gateway", transport=_failing_transport()).read(SUBJECT)
    assert result.success is False
    assert result.payload == []
    assert "ConnectError" in result.error


@pytest.mark.asyncio
async def test_model_card_reader():
    transport = _transport({
        f"/models/{SUBJECT}": httpx.Response(200, json={
            "id": SUBJECT,
            "author": "acme",
            "pipeline_tag": "text-classification",
            "tags": ["bert"],
            "cardData": {"accuracy": 0.92, "datasets": "imdb"},
        }),
    })
    result = await HuggingFaceModelCardReader("https://hub.test", transport=transport).read(SUBJECT)
    assert result.success is True
    card = result.payload
    assert card.model_id == SUBJECT
    assert card.pipeline_tag == "text-classification"
    assert card.datasets == ("imdb",)
    assert card.card_data["accuracy"] == 0.92


@pytest.mark.asyncio
async def test_model_card_reader_invalid_json():
    transport = _transport({f"/models/{SUBJECT}": httpx.Response(200, text="<html>")})
    result = await HuggingFaceModelCardReader("https://hub.test", transport=transport).read(SUBJECT)
    assert result.success is False
    assert result.payload is None


@pytest.mark.asyncio
async def test_model_card_reader_malformed_fields_fail_the_read():
    """A card whose datasets field is a number fails the read instead of raising."""
    transport = _transport({
        f"/models/{SUBJECT}": httpx.Response(200, json={"id": SUBJECT, "cardData": {"datasets": 5}}),
    })
    result = await HuggingFaceModelCardReader("https://hub.test", transport=transport).read(SUBJECT)
    assert result.success is False
    assert result.payload is None
    assert "malformed payload: TypeError" in result.error


@pytest.mark.asyncio
async def test_benchmark_reader_404_is_success_without_payload():
    result = await HttpBenchmarkReader("http://backend", transport=_transport({})).read(SUBJECT)
    assert result.success is True
    assert result.payload is None


@pytest.mark.asyncio
async def test_benchmark_reader_unwraps_evaluation():
    transport = _transport({
        f"/api/evaluation/{SUBJECT}": httpx.Response(200, json={"evaluation": {
            "measuredAccuracy": 0.78, "samplesTested": 500, "taskType": "text-classification",
        }}),
    })
    result = await HttpBenchmarkReader("http://backend", transport=transport).read(SUBJECT)
    assert result.success is True
    assert result.payload.measured_accuracy == 0.78
    assert result.payload.samples_tested == 500


@pytest.mark.asyncio
async def test_benchmark_reader_server_error_fails():
    transport = _transport({f"/api/evaluation/{SUBJECT}": httpx.Response(503)})
    result = await HttpBenchmarkReader("http://backend", transport=transport).read(SUBJECT)
    assert result.success is False
    assert result.payload is None


def test_reader_requires_base_url():
    with pytest.raises(ValueError):
        HttpStatsReader("  ")


def _probe_request() -> ProbeRequest:
    return ProbeRequest(model_card=None, ratings=(), baseline_trust_score=0.72, name=SUBJECT)


@pytest.mark.asyncio
async def test_prober_not_configured_is_unavailable():
    report = await HttpSecurityProber(None).probe(SUBJECT, _probe_request())
    assert report.available is False
    assert report.risk_level == "UNKNOWN"
    assert "not configured" in report.verdict_summary


@pytest.mark.asyncio
async def test_prober_posts_context_and_parses_report():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={
            "riskLevel": "high",
            "tests": [{"name": "prompt_injection", "status": "fail", "detail": "2/5 bypassed",
                       "evidence": {"failures": [{"detail": "ignored system prompt"}]}}],
            "verdict": {"summary": "Model is injectable"},
            "metadata": {"testsRun": 1, "testsPassed": 0, "testsFailed": 1},
        })

    prober = HttpSecurityProber("http://redteam/probe", transport=httpx.MockTransport(handler))
    report = await prober.probe(SUBJECT, _probe_request())
    assert seen["modelId"] == SUBJECT
    assert seen["baselineTrustScore"] == 0.72
    assert report.available is True
    assert report.risk_level == "HIGH"
    assert report.tests[0].status == "FAIL"
    assert report.tests[0].failures == [{"detail": "ignored system prompt"}]
    assert report.metadata.tests_failed == 1
    assert report.verdict_summary == "Model is injectable"


@pytest.mark.asyncio
async def test_prober_error_degrades():
    prober = HttpSecurityProber("http://redteam/probe", transport=_failing_transport())
    report = await prober.probe(SUBJECT, _probe_request())
    assert report.available is False


def _insight(summary: str = "Rating manipulation detected") -> TrustInsight:
    return TrustInsight(
        subject=SUBJECT, veracity="MISMATCH", risk_level="HIGH", confidence=0.8, summary=summary,
        created_at="2026-01-01T00:00:00+00:00",
    )


def test_build_notification_truncates_summary():
    body = build_notification(_insight("x" * 800))
    assert body["modelSlug"] == SUBJECT
    assert body["riskLevel"] == "HIGH"
    assert len(body["summary"]) == 500
    assert body["summary"].endswith("...")
    assert body["timestamp"] == "2026-01-01T00:00:00+00:00"


@pytest.mark.asyncio
async def test_webhook_notifier_posts_body():
    received: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True})

    notifier = WebhookNotifier("http://frontend/notify", transport=httpx.MockTransport(handler))
    assert await notifier.notify(_insight()) is True
    assert received[0]["summary"] == "Rating manipulation detected"


@pytest.mark.asyncio
async def test_webhook_notifier_never_raises():
    assert await WebhookNotifier(None).notify(_insight()) is False
    failing = WebhookNotifier("http://frontend/notify", transport=_failing_transport())
    assert await failing.notify(_insight()) is False
    rejected = WebhookNotifier(
        "http://frontend/notify", transport=httpx.MockTransport(lambda r: httpx.Response(502))
    )
    assert await rejected.notify(_insight()) is False
