"""
High-risk insight notifier: POST to the frontend webhook.

Best effort only. A missing URL is a logged skip; transport errors and bad
statuses are logged and reported as False, never raised.
"""

from __future__ import annotations

import httpx

from backend_veriai.insights.models import TrustInsight
from backend_veriai.veriai_logging import get_logger

logger = get_logger(__name__)

# Max summary length sent in the webhook body
MAX_SUMMARY_LENGTH = 500


def _summary_truncate(summary: str) -> str:
    if len(summary) <= MAX_SUMMARY_LENGTH:
        return summary
    return summary[: MAX_SUMMARY_LENGTH - 3] + "..."


def build_notification(insight: TrustInsight) -> dict[str, str]:
    return {
        "modelSlug": insight.subject,
        "riskLevel": insight.risk_level,
        "summary": _summary_truncate(insight.summary),
        "timestamp": insight.created_at,
    }


class WebhookNotifier:
    def __init__(
        self,
        url: str | None,
        *,
        timeout_sec: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = (url or "").strip() or None
        self._timeout = timeout_sec
        self._transport = transport

    async def notify(self, insight: TrustInsight) -> bool:
        """Send the notification; True only when the webhook accepted it."""
        if self._url is None:
            logger.info("notify_skipped", subject=insight.subject, reason="no_url")
            return False
        body = build_notification(insight)
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            ) as client:
                resp = await client.post(self._url, json=body)
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "notify_failed",
                subject=insight.subject,
                risk_level=insight.risk_level,
                error=str(e),
            )
            return False
        logger.info("notify_sent", subject=insight.subject, risk_level=insight.risk_level)
        return True
