"""
Security Prober adapter (red-team service).

POSTs the probe context to REDTEAM_URL and parses the report. A missing URL,
transport error, bad status or malformed body degrades to
SecurityReport.unavailable(); the probe never fails an evaluation job.
"""

from __future__ import annotations

from typing import Protocol

import httpx

from backend_veriai.sources.models import ProbeRequest, SecurityReport
from backend_veriai.veriai_logging import get_logger

logger = get_logger(__name__)


class SecurityProber(Protocol):
    async def probe(self, subject: str, request: ProbeRequest) -> SecurityReport: ...


class HttpSecurityProber:
    def __init__(
        self,
        url: str | None,
        *,
        timeout_sec: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = (url or "").strip() or None
        self._timeout = timeout_sec
        self._transport = transport

    @property
    def configured(self) -> bool:
        return self._url is not None

    async def probe(self, subject: str, request: ProbeRequest) -> SecurityReport:
        if self._url is None:
            logger.info("security_probe_skipped", subject=subject, reason="not_configured")
            return SecurityReport.unavailable(subject, "not configured")
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            ) as client:
                resp = await client.post(self._url, json=request.to_payload(subject))
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("security_probe_failed", subject=subject, error=str(e))
            return SecurityReport.unavailable(subject, type(e).__name__)
        if not isinstance(data, dict):
            logger.warning("security_probe_failed", subject=subject, error="response is not an object")
            return SecurityReport.unavailable(subject, "malformed response")
        report = SecurityReport.from_payload(subject, data)
        logger.info(
            "security_probe_done",
            subject=subject,
            risk_level=report.risk_level,
            tests_run=report.metadata.tests_run,
            tests_failed=report.metadata.tests_failed,
        )
        return report
