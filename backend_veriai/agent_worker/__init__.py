"""
Agent worker: debounced job queue, evaluation pipeline, agent runtime.
"""

from backend_veriai.agent_worker.job_queue import Job, JobQueue, QueueStatus
from backend_veriai.agent_worker.pipeline import EvaluationOutcome, EvaluationPipeline

__all__ = [
    "EvaluationOutcome",
    "EvaluationPipeline",
    "Job",
    "JobQueue",
    "QueueStatus",
]
