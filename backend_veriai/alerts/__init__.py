"""
High-risk alerting: webhook notification for HIGH / CRITICAL trust insights.
"""

from backend_veriai.alerts.webhook import WebhookNotifier, build_notification

__all__ = [
    "WebhookNotifier",
    "build_notification",
]
