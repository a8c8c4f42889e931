"""
Chain listener: rating-contract events, subject id index, watcher.
"""

from backend_veriai.chain_listener.event_source import EventSource, WebSocketEventSource
from backend_veriai.chain_listener.models import ChainEvent, JobRequest
from backend_veriai.chain_listener.subject_index import SubjectIndex
from backend_veriai.chain_listener.watcher import ChainEventWatcher

__all__ = [
    "ChainEvent",
    "ChainEventWatcher",
    "EventSource",
    "JobRequest",
    "SubjectIndex",
    "WebSocketEventSource",
]
