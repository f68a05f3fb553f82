"""Custom exception hierarchy for the study handbook pipeline."""

from typing import Optional


class HandbookError(Exception):
    """Base exception for all handbook pipeline errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# ---- LLM Errors ----

class LLMError(HandbookError):
    """Base exception for text generation service errors."""


class LLMRateLimitError(LLMError):
    """Generation service rate limit exceeded."""

    def __init__(self, message: str = "API rate limit exceeded", retry_after: Optional[float] = None):
        details = {}
        if retry_after is not None:
            details["retry_after"] = retry_after
        super().__init__(message, details)
        self.retry_after = retry_after


class LLMTimeoutError(LLMError):
    """Generation request timed out."""


class LLMOverloadedError(LLMError):
    """Generation service is overloaded or returned a server error."""


class LLMResponseParseError(LLMError):
    """Structured output could not be parsed."""

    def __init__(self, message: str = "Failed to parse LLM response", raw_response: str = ""):
        details = {"raw_response": raw_response[:200]} if raw_response else {}
        super().__init__(message, details)
        self.raw_response = raw_response


TRANSIENT_LLM_ERRORS = (LLMRateLimitError, LLMTimeoutError, LLMOverloadedError)


# ---- Database Errors ----

class DatabaseError(HandbookError):
    """Database operation failed."""


# ---- Workflow Errors ----

class WorkflowError(HandbookError):
    """Base exception for workflow orchestration errors."""


# ---- Validation Errors ----

class ValidationError(HandbookError):
    """Input validation failed."""


class PlanValidationError(ValidationError):
    """Narrative plan is unusable."""


class InvalidConfigError(ValidationError):
    """Configuration value is invalid."""
