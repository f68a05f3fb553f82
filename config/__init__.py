"""Configuration package — settings, logging, and exceptions."""

from config.exceptions import (
    HandbookError,
    LLMError,
    LLMRateLimitError,
    LLMTimeoutError,
    LLMOverloadedError,
    LLMResponseParseError,
    TRANSIENT_LLM_ERRORS,
    DatabaseError,
    WorkflowError,
    ValidationError,
    PlanValidationError,
    InvalidConfigError,
)
from config.logging_config import setup_logging
from config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "setup_logging",
    "HandbookError",
    "LLMError",
    "LLMRateLimitError",
    "LLMTimeoutError",
    "LLMOverloadedError",
    "LLMResponseParseError",
    "TRANSIENT_LLM_ERRORS",
    "DatabaseError",
    "WorkflowError",
    "ValidationError",
    "PlanValidationError",
    "InvalidConfigError",
]
