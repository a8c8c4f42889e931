"""
Autonomous trust agent runtime.

Wires the bounded event channel, ChainEventWatcher, JobQueue and
EvaluationPipeline from Settings. start() brings up the watcher and the
channel consumer; stop() tears them down; run_evaluation() is the manual
trigger and bypasses the queue.

Usage: python main.py  (runs until SIGINT/SIGTERM)
"""

from __future__ import annotations

import asyncio
import signal
from typing import Any

from backend_veriai.agent_worker.job_queue import JobQueue
from backend_veriai.agent_worker.pipeline import EvaluationOutcome, EvaluationPipeline
from backend_veriai.alerts.webhook import WebhookNotifier
from backend_veriai.analysis_engine.aggregator import DataAggregator
from backend_veriai.chain_listener.event_source import EventSource, WebSocketEventSource
from backend_veriai.chain_listener.models import REASON_MANUAL, JobRequest
from backend_veriai.chain_listener.subject_index import SubjectIndex
from backend_veriai.chain_listener.watcher import ChainEventWatcher
from backend_veriai.config.settings import Settings
from backend_veriai.database.database import get_database
from backend_veriai.database.result_store import ResultStore
from backend_veriai.insights.llm_client import OpenAIChatModel
from backend_veriai.insights.synthesizer import InsightSynthesizer
from backend_veriai.sources.readers import (
    HttpBenchmarkReader,
    HttpRatingsReader,
    HttpStatsReader,
    HuggingFaceModelCardReader,
)
from backend_veriai.sources.security_prober import HttpSecurityProber
from backend_veriai.veriai_logging import get_logger

logger = get_logger(__name__)


def build_store(settings: Settings) -> ResultStore:
    return ResultStore(get_database(settings.db_path), cache_ttl_sec=settings.cache_ttl_sec)


def build_pipeline(settings: Settings, store: ResultStore) -> EvaluationPipeline:
    """Production collaborators: httpx readers, red-team prober, OpenAI (when keyed), webhook."""
    timeout = settings.reader_timeout_sec
    aggregator = DataAggregator(
        HttpStatsReader(settings.chain_gateway_url, timeout_sec=timeout),
        HttpRatingsReader(settings.chain_gateway_url, timeout_sec=timeout),
        HuggingFaceModelCardReader(settings.hf_api_url, timeout_sec=timeout),
        HttpBenchmarkReader(settings.backend_url, timeout_sec=timeout),
        history=store,
    )
    llm = None
    if settings.openai_api_key:
        llm = OpenAIChatModel(
            settings.openai_api_key,
            settings.openai_model,
            timeout_sec=settings.llm_timeout_sec,
        )
    else:
        logger.warning("runtime_llm_not_configured", fallback_only=True)
    synthesizer = InsightSynthesizer(
        llm,
        notifier=WebhookNotifier(settings.frontend_notify_url, timeout_sec=settings.notify_timeout_sec),
    )
    prober = HttpSecurityProber(settings.redteam_url, timeout_sec=settings.prober_timeout_sec)
    return EvaluationPipeline(aggregator, prober, synthesizer, store)


class TrustAgent:
    def __init__(
        self,
        settings: Settings,
        *,
        pipeline: EvaluationPipeline | None = None,
        store: ResultStore | None = None,
        event_source: EventSource | None = None,
        subject_index: SubjectIndex | None = None,
    ) -> None:
        self._settings = settings
        self.store = store if store is not None else build_store(settings)
        self.pipeline = pipeline if pipeline is not None else build_pipeline(settings, self.store)
        self.channel: asyncio.Queue[JobRequest] = asyncio.Queue(maxsize=settings.event_channel_maxsize)
        self.queue = JobQueue(
            self.pipeline.run_evaluation,
            inter_job_delay_sec=settings.inter_job_delay_sec,
        )
        if event_source is None and settings.chain_events_ws_url:
            event_source = WebSocketEventSource(settings.chain_events_ws_url)
        self.watcher: ChainEventWatcher | None = None
        if event_source is not None:
            self.watcher = ChainEventWatcher(event_source, self.channel, subject_index=subject_index)
        self._started = False

    @property
    def is_listening(self) -> bool:
        return self.watcher is not None and self.watcher.is_listening

    def start(self) -> None:
        """Start the watcher (if an event feed is configured) and the channel consumer; idempotent."""
        if self._started:
            return
        self._started = True
        self.queue.start_consumer(self.channel)
        if self.watcher is not None:
            self.watcher.start()
        else:
            logger.warning("runtime_no_event_feed", reason="CHAIN_EVENTS_WS_URL not set")
        logger.info(
            "runtime_agent_started",
            db_path=str(self._settings.db_path),
            inter_job_delay_sec=self._settings.inter_job_delay_sec,
            channel_maxsize=self._settings.event_channel_maxsize,
        )

    async def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        if self.watcher is not None:
            await self.watcher.stop()
        await self.queue.close()
        logger.info("runtime_agent_stopped")

    def status(self) -> dict[str, Any]:
        return {"is_listening": self.is_listening, **self.queue.status().to_dict()}

    async def run_evaluation(self, subject: str, reason: str = REASON_MANUAL) -> EvaluationOutcome:
        """Manual trigger: runs the pipeline now, outside the queue and its debounce."""
        return await self.pipeline.run_evaluation(subject, reason)

    async def run_forever(self) -> None:
        """Run until SIGINT/SIGTERM, then stop cleanly."""
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except (NotImplementedError, RuntimeError):
                # add_signal_handler is unavailable on Windows event loops
                pass
        self.start()
        try:
            await stop_event.wait()
            logger.info("runtime_shutdown_signal")
        finally:
            await self.stop()
