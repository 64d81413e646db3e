"""Custom exceptions for DevInsight."""

from __future__ import annotations


class DevInsightException(Exception):
    """Base exception for DevInsight."""
    pass


class LLMError(DevInsightException):
    """LLM API errors."""
    pass


class RateLimitError(DevInsightException):
    """Rate limit exceeded."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)


class AnalysisError(DevInsightException):
    """Analysis pipeline errors."""

    def __init__(self, message: str, analysis_type: str | None = None) -> None:
        self.analysis_type = analysis_type
        super().__init__(message)


class ValidationError(DevInsightException):
    """Invalid request input."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class PersistenceError(DevInsightException):
    """Database errors."""
    pass


class NotFoundError(DevInsightException):
    """Requested record does not exist."""
    pass


class ConfigurationError(DevInsightException):
    """Invalid or missing configuration."""
    pass
