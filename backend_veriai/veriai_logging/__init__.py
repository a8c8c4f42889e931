"""
Structured logging for the trust-evaluation agent.
"""

from backend_veriai.veriai_logging.logger import bind_subject, get_logger, job_context

__all__ = ["bind_subject", "get_logger", "job_context"]
