"""
Core utilities: domain exceptions and cross-cutting concerns shared by the
chain listener, source readers, analysis engine and agent worker.
"""

from backend_veriai.core.exceptions import (
    InsightValidationError,
    LanguageModelError,
    PersistenceError,
    SourceReadError,
    VeriAIError,
)

__all__ = [
    "InsightValidationError",
    "LanguageModelError",
    "PersistenceError",
    "SourceReadError",
    "VeriAIError",
]
