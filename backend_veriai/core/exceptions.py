"""
Application-level exceptions.

Domain errors raised by source adapters, the language model client and the
store. The pipeline converts them into failed outcomes or fallbacks; none of
them is allowed to escape the job queue.
"""

from __future__ import annotations


class VeriAIError(Exception):
    """Base class for all VeriAI domain errors."""

    code = "veriai_error"

    def __init__(self, message: str, *, subject: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.subject = subject

    def to_dict(self) -> dict[str, str | None]:
        return {"code": self.code, "message": self.message, "subject": self.subject}


class SourceReadError(VeriAIError):
    """A Source Reader could not produce its payload (transport, status or shape)."""

    code = "source_read_failed"

    def __init__(self, source: str, message: str, *, subject: str | None = None) -> None:
        super().__init__(f"{source}: {message}", subject=subject)
        self.source = source


class LanguageModelError(VeriAIError):
    """The language model call failed or returned no content."""

    code = "language_model_failed"


class InsightValidationError(VeriAIError):
    """The language model response was not a valid insight object."""

    code = "insight_invalid"


class PersistenceError(VeriAIError):
    """A ResultStore write failed."""

    code = "persistence_failed"

