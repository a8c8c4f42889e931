"""
Tests for the chain event watcher and subject index.

Uses an in-memory EventSource, plus a local websockets server for restarts.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator

import pytest
import websockets

from backend_veriai.chain_listener.event_source import WebSocketEventSource
from backend_veriai.chain_listener.models import ChainEvent, JobRequest, normalize_subject_id
from backend_veriai.chain_listener.subject_index import SubjectIndex
from backend_veriai.chain_listener.watcher import ChainEventWatcher


class _MemorySource:
    """Yields queued messages, then waits until closed."""

    def __init__(self, messages: list[dict[str, Any]] | None = None) -> None:
        self._messages = list(messages or [])
        self._closed = asyncio.Event()
        self.close_calls = 0

    async def events(self) -> AsyncIterator[dict[str, Any]]:
        for message in self._messages:
            yield message
        await self._closed.wait()

    async def close(self) -> None:
        self.close_calls += 1
        self._closed.set()


def _submitted(subject_id: Any, slug: str) -> dict[str, Any]:
    return {"event": "RatingSubmitted", "args": {"subjectId": subject_id, "slug": slug, "score": 4}}


def test_normalize_subject_id():
    assert normalize_subject_id(7) == "7"
    assert normalize_subject_id("0x0a") == "10"
    assert normalize_subject_id(" 42 ") == "42"
    with pytest.raises(ValueError):
        normalize_subject_id("")
    with pytest.raises(ValueError):
        normalize_subject_id(True)


def test_chain_event_from_message():
    event = ChainEvent.from_message({"event": "RatingSlashed", "args": {"modelId": "0x1"}, "txHash": "0xabc"})
    assert event.subject_id == "1"
    assert event.slug is None
    assert event.reason == "rating_slashed"
    assert event.tx_hash == "0xabc"
    with pytest.raises(ValueError):
        ChainEvent.from_message({"event": "Transfer", "args": {"subjectId": 1}})
    with pytest.raises(KeyError):
        ChainEvent.from_message({"event": "RatingUpdated", "args": {}})


def test_subject_index_learn_and_resolve():
    index = SubjectIndex({1: "acme/a"})
    assert index.resolve("1") == "acme/a"
    assert index.resolve("0x1") == "acme/a"
    assert index.learn(2, "acme/b") is True
    assert index.learn(3, "  ") is False
    assert 2 in index
    assert index.resolve(99) is None
    assert index.resolve("") is None
    assert len(index) == 2


@pytest.mark.asyncio
async def test_rating_submitted_learns_slug_and_publishes():
    channel: asyncio.Queue[JobRequest] = asyncio.Queue(maxsize=10)
    watcher = ChainEventWatcher(_MemorySource(), channel)
    request = watcher.handle_message(_submitted(5, "acme/sentiment"))
    assert request == JobRequest(subject="acme/sentiment", reason="rating_submitted")
    assert channel.get_nowait() == request
    assert watcher.subject_index.resolve(5) == "acme/sentiment"

    follow_up = watcher.handle_message({"event": "TrustScoreUpdated", "args": {"subjectId": "5"}})
    assert follow_up == JobRequest(subject="acme/sentiment", reason="trust_score_updated")


@pytest.mark.asyncio
async def test_unresolved_subject_is_dropped():
    """Events for ids never seen in RatingSubmitted are logged and dropped."""
    channel: asyncio.Queue[JobRequest] = asyncio.Queue(maxsize=10)
    watcher = ChainEventWatcher(_MemorySource(), channel)
    assert watcher.handle_message({"event": "RatingUpdated", "args": {"subjectId": 77}}) is None
    assert channel.empty()
    assert watcher.dropped == 1


@pytest.mark.asyncio
async def test_malformed_events_are_skipped():
    channel: asyncio.Queue[JobRequest] = asyncio.Queue(maxsize=10)
    watcher = ChainEventWatcher(_MemorySource(), channel)
    assert watcher.handle_message({"event": "Approval", "args": {}}) is None
    assert watcher.handle_message({"event": "RatingSubmitted", "args": {"slug": "x"}}) is None
    assert channel.empty()


@pytest.mark.asyncio
async def test_full_channel_drops_with_warning():
    channel: asyncio.Queue[JobRequest] = asyncio.Queue(maxsize=1)
    watcher = ChainEventWatcher(_MemorySource(), channel)
    assert watcher.handle_message(_submitted(1, "acme/a")) is not None
    assert watcher.handle_message(_submitted(2, "acme/b")) is None
    assert channel.qsize() == 1
    assert watcher.published == 1
    assert watcher.dropped == 1


@pytest.mark.asyncio
async def test_start_and_stop_are_idempotent():
    """Running watcher publishes from the source; repeated start/stop are no-ops."""
    channel: asyncio.Queue[JobRequest] = asyncio.Queue(maxsize=10)
    source = _MemorySource([_submitted(1, "acme/a"), {"event": "RatingSlashed", "args": {"subjectId": 1}}])
    watcher = ChainEventWatcher(source, channel)

    watcher.start()
    watcher.start()
    assert watcher.is_listening is True

    first = await asyncio.wait_for(channel.get(), timeout=1.0)
    second = await asyncio.wait_for(channel.get(), timeout=1.0)
    assert (first.reason, second.reason) == ("rating_submitted", "rating_slashed")
    assert second.subject == "acme/a"

    await watcher.stop()
    await watcher.stop()
    assert watcher.is_listening is False
    assert source.close_calls == 1


@pytest.mark.asyncio
async def test_watcher_restarts_on_websocket_source():
    """After stop() a second start() subscribes again and keeps publishing."""
    connections = 0

    async def handler(ws, *args):
        nonlocal connections
        connections += 1
        await ws.send(json.dumps(_submitted(connections, f"acme/run-{connections}")))
        await ws.wait_closed()

    async with websockets.serve(handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        source = WebSocketEventSource(f"ws://127.0.0.1:{port}", reconnect_min_sec=0.05, ping_interval=None)
        channel: asyncio.Queue[JobRequest] = asyncio.Queue(maxsize=10)
        watcher = ChainEventWatcher(source, channel)

        watcher.start()
        first = await asyncio.wait_for(channel.get(), timeout=5.0)
        await watcher.stop()

        watcher.start()
        second = await asyncio.wait_for(channel.get(), timeout=5.0)
        assert watcher.is_listening is True
        await watcher.stop()

    assert (first.subject, second.subject) == ("acme/run-1", "acme/run-2")
