"""
Rating-contract event source over WebSocket.

Connects to CHAIN_EVENTS_WS_URL, which streams decoded contract events as
JSON text frames ``{"event": name, "args": {...}, "txHash": ...}``, and
yields each frame as a dict. Reconnects with exponential backoff until
close() is called.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from backend_veriai.veriai_logging import get_logger

logger = get_logger(__name__)

DEFAULT_RECONNECT_MIN_SEC = 1.0
DEFAULT_RECONNECT_MAX_SEC = 60.0
DEFAULT_WS_PING_INTERVAL = 30.0
DEFAULT_WS_PING_TIMEOUT = 10.0
_WS_CLOSE_TIMEOUT = 5.0


class EventSource(Protocol):
    def events(self) -> AsyncIterator[dict[str, Any]]: ...

    async def close(self) -> None: ...


class WebSocketEventSource:
    def __init__(
        self,
        url: str,
        *,
        reconnect_min_sec: float = DEFAULT_RECONNECT_MIN_SEC,
        reconnect_max_sec: float = DEFAULT_RECONNECT_MAX_SEC,
        ping_interval: float | None = DEFAULT_WS_PING_INTERVAL,
        ping_timeout: float | None = DEFAULT_WS_PING_TIMEOUT,
    ) -> None:
        if not url.strip():
            raise ValueError("url must be non-empty")
        self._url = url.strip()
        self._reconnect_min = reconnect_min_sec
        self._reconnect_max = reconnect_max_sec
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._stop = asyncio.Event()

    async def close(self) -> None:
        self._stop.set()

    async def events(self) -> AsyncIterator[dict[str, Any]]:
        """Yield decoded event messages; non-JSON and non-object frames are skipped."""
        # Each subscription starts open; close() only ends the current one
        self._stop.clear()
        backoff = self._reconnect_min
        run_id = 0
        while not self._stop.is_set():
            run_id += 1
            try:
                logger.info("event_source_connecting", run_id=run_id, url=self._url)
                async with websockets.connect(
                    self._url,
                    ping_interval=self._ping_interval,
                    ping_timeout=self._ping_timeout,
                    close_timeout=_WS_CLOSE_TIMEOUT,
                ) as ws:
                    backoff = self._reconnect_min
                    logger.info("event_source_connected", run_id=run_id)
                    async for raw in ws:
                        if self._stop.is_set():
                            return
                        try:
                            msg = json.loads(raw)
                        except (TypeError, ValueError):
                            logger.debug("event_source_frame_skipped", run_id=run_id)
                            continue
                        if isinstance(msg, dict):
                            yield msg
            except ConnectionClosed as e:
                logger.warning(
                    "event_source_disconnected",
                    run_id=run_id,
                    code=e.rcvd.code if e.rcvd else None,
                    reason=e.rcvd.reason if e.rcvd else None,
                )
            except OSError as e:
                logger.warning("event_source_connect_failed", run_id=run_id, error=str(e))
            except WebSocketException as e:
                logger.warning("event_source_error", run_id=run_id, error=str(e))

            if self._stop.is_set():
                break
            logger.info("event_source_reconnect", run_id=run_id, backoff_sec=round(backoff, 1))
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=backoff)
            except asyncio.TimeoutError:
                pass
            backoff = min(backoff * 2, self._reconnect_max)
        logger.info("event_source_stopped", run_id=run_id)
