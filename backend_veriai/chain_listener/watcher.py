"""
Chain event watcher: rating-contract events -> JobRequests on a bounded channel.

Responsibilities:
- Run one subscription task over an EventSource (start/stop, both idempotent).
- Normalize RatingSubmitted / RatingUpdated / RatingSlashed / TrustScoreUpdated
  into (subject, reason) and publish a JobRequest.
- Resolve numeric subject ids through the SubjectIndex; unresolved events are
  logged and dropped, never fatal.
- Drop with a warning when the channel is full.
"""

from __future__ import annotations

import asyncio
from typing import Any

from backend_veriai.chain_listener.event_source import EventSource
from backend_veriai.chain_listener.models import (
    EVENT_RATING_SUBMITTED,
    ChainEvent,
    JobRequest,
)
from backend_veriai.chain_listener.subject_index import SubjectIndex
from backend_veriai.veriai_logging import get_logger

logger = get_logger(__name__)


class ChainEventWatcher:
    def __init__(
        self,
        source: EventSource,
        channel: asyncio.Queue[JobRequest],
        *,
        subject_index: SubjectIndex | None = None,
    ) -> None:
        self._source = source
        self._channel = channel
        self._index = subject_index if subject_index is not None else SubjectIndex()
        self._task: asyncio.Task[None] | None = None
        self.published = 0
        self.dropped = 0

    @property
    def is_listening(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def subject_index(self) -> SubjectIndex:
        return self._index

    def start(self) -> None:
        """Begin the subscription task; no-op while already listening."""
        if self.is_listening:
            return
        self._task = asyncio.create_task(self._run(), name="chain_event_watcher")
        logger.info("watcher_started")

    async def stop(self) -> None:
        """Cancel the subscription and close the source; no-op when not listening."""
        task = self._task
        self._task = None
        if task is None:
            return
        await self._source.close()
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("watcher_stopped", published=self.published, dropped=self.dropped)

    async def _run(self) -> None:
        try:
            async for message in self._source.events():
                try:
                    self.handle_message(message)
                except Exception as e:
                    logger.exception("watcher_event_failed", error=str(e))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("watcher_source_failed", error=str(e))
        logger.info("watcher_source_exhausted")

    def handle_message(self, message: dict[str, Any]) -> JobRequest | None:
        """Normalize one raw event and publish it; returns the published request or None."""
        try:
            event = ChainEvent.from_message(message)
        except (KeyError, ValueError) as e:
            logger.warning("watcher_event_skipped", chain_event=message.get("event"), error=str(e))
            return None

        if event.name == EVENT_RATING_SUBMITTED and event.slug:
            self._index.learn(event.subject_id, event.slug)
            subject: str | None = event.slug
        else:
            subject = self._index.resolve(event.subject_id)

        if subject is None:
            logger.warning(
                "watcher_subject_unresolved",
                chain_event=event.name,
                subject_id=event.subject_id,
                tx_hash=event.tx_hash,
            )
            self.dropped += 1
            return None

        request = JobRequest(subject=subject, reason=event.reason)
        return request if self.publish(request) else None

    def publish(self, request: JobRequest) -> bool:
        try:
            self._channel.put_nowait(request)
        except asyncio.QueueFull:
            logger.warning(
                "watcher_channel_full_dropped",
                subject=request.subject,
                reason=request.reason,
                maxsize=self._channel.maxsize,
            )
            self.dropped += 1
            return False
        self.published += 1
        logger.info("watcher_job_published", subject=request.subject, reason=request.reason)
        return True
