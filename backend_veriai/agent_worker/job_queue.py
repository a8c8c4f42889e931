"""
Debounced single-consumer job queue.

One pending Job per subject at most: an enqueue for a subject that already
has a pending job is discarded (first request wins until drained). One drain
task runs jobs strictly in enqueue order, one at a time, with a fixed delay
after each job. Failed jobs are logged and discarded; there is no retry.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from backend_veriai.chain_listener.models import JobRequest
from backend_veriai.veriai_logging import get_logger

logger = get_logger(__name__)

DEFAULT_INTER_JOB_DELAY_SEC = 2.0

RunJob = Callable[[str, str], Awaitable[Any]]


@dataclass(frozen=True)
class Job:
    subject: str
    reason: str
    enqueued_at: float
    """Unix timestamp (seconds)."""


@dataclass(frozen=True)
class QueueStatus:
    queue_length: int
    processing_queue: bool

    def to_dict(self) -> dict[str, Any]:
        return {"queue_length": self.queue_length, "processing_queue": self.processing_queue}


class JobQueue:
    def __init__(
        self,
        run_job: RunJob,
        *,
        inter_job_delay_sec: float = DEFAULT_INTER_JOB_DELAY_SEC,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._run_job = run_job
        self._delay = max(0.0, inter_job_delay_sec)
        self._sleep = sleep
        self._clock = clock
        self._pending: deque[Job] = deque()
        self._draining = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._drain_task: asyncio.Task[None] | None = None
        self._consumer_task: asyncio.Task[None] | None = None
        self.completed = 0
        self.failed = 0

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def draining(self) -> bool:
        return self._draining

    def pending_subjects(self) -> list[str]:
        return [job.subject for job in self._pending]

    def enqueue(self, subject: str, reason: str) -> bool:
        """
        Add a job for ``subject`` unless one is already pending.

        Returns True when a job was added. Starts the drain task if idle.
        """
        if any(job.subject == subject for job in self._pending):
            logger.info("queue_job_debounced", subject=subject, reason=reason)
            return False
        self._pending.append(Job(subject=subject, reason=reason, enqueued_at=self._clock()))
        logger.info("queue_job_enqueued", subject=subject, reason=reason, queue_length=len(self._pending))
        if not self._draining:
            self._draining = True
            self._idle.clear()
            self._drain_task = asyncio.create_task(self._drain(), name="job_queue_drain")
        return True

    async def _drain(self) -> None:
        try:
            while self._pending:
                job = self._pending.popleft()
                await self._run_one(job)
                if self._delay > 0:
                    await self._sleep(self._delay)
        finally:
            self._draining = False
            self._idle.set()
            logger.info("queue_drained", completed=self.completed, failed=self.failed)

    async def _run_one(self, job: Job) -> None:
        started = time.monotonic()
        try:
            outcome = await self._run_job(job.subject, job.reason)
        except Exception as e:
            self.failed += 1
            logger.exception("queue_job_failed", subject=job.subject, reason=job.reason, error=str(e))
            return
        if getattr(outcome, "success", True):
            self.completed += 1
            logger.info(
                "queue_job_done",
                subject=job.subject,
                reason=job.reason,
                duration_sec=round(time.monotonic() - started, 2),
            )
        else:
            self.failed += 1
            logger.warning(
                "queue_job_failed",
                subject=job.subject,
                reason=job.reason,
                error=getattr(outcome, "error", None),
            )

    async def consume(self, channel: asyncio.Queue[JobRequest]) -> None:
        """Read JobRequests from the channel forever and enqueue them."""
        while True:
            request = await channel.get()
            try:
                self.enqueue(request.subject, request.reason)
            except Exception as e:
                logger.exception("queue_consume_failed", subject=getattr(request, "subject", None), error=str(e))
            finally:
                channel.task_done()

    def start_consumer(self, channel: asyncio.Queue[JobRequest]) -> None:
        if self._consumer_task is not None and not self._consumer_task.done():
            return
        self._consumer_task = asyncio.create_task(self.consume(channel), name="job_queue_consumer")

    def status(self) -> QueueStatus:
        return QueueStatus(queue_length=len(self._pending), processing_queue=self._draining)

    async def wait_idle(self) -> None:
        """Return once the drain loop has emptied the queue."""
        await self._idle.wait()

    async def close(self) -> None:
        """Cancel the consumer and drain tasks; pending jobs are discarded."""
        dropped = len(self._pending)
        self._pending.clear()
        for task in (self._consumer_task, self._drain_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._consumer_task = None
        self._drain_task = None
        self._draining = False
        self._idle.set()
        logger.info("queue_closed", dropped=dropped)
