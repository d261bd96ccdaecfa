"""
Domain exceptions for MindClear.

Every error the core raises derives from MindClearError and carries a stable
``code`` so API callers can branch on it without parsing messages.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional


class MindClearError(Exception):
    """Base class for all expected, caller-facing failures."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message
        if code:
            self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            },
        }


class InputValidationError(MindClearError):
    """User text failed normalization checks."""

    code = "VALIDATION_ERROR"
    status_code = 422

    def __init__(self, errors: List[Dict[str, str]]):
        self.errors = errors
        message = ", ".join(error["message"] for error in errors) or "Validation error"
        super().__init__(message, details={"errors": errors})


class ResponseSchemaError(MindClearError):
    """The LLM reply could not be turned into a decision."""

    status_code = 502

    def __init__(self, code: str, errors: List[str]):
        self.errors = errors
        super().__init__(f"Invalid AI response: {'; '.join(errors)}", code=code, details={"errors": errors})


class ProviderError(MindClearError):
    """The LLM provider call failed; ``code`` names the category."""

    status_code = 503

    def __init__(self, code: str, message: str):
        super().__init__(message, code=code)
        if code == "PROVIDER_RATE_LIMITED":
            self.status_code = 429


class PhaseNotSupportedError(MindClearError):
    """A thinking-session phase exists in the sequence but has no behaviour yet."""

    code = "PHASE_NOT_SUPPORTED"
    status_code = 400

    def __init__(self, phase: str, message: Optional[str] = None):
        self.phase = phase
        super().__init__(message or f"Phase {phase} is not yet implemented.", details={"phase": phase})


class PhaseTransitionError(MindClearError):
    code = "PHASE_TRANSITION_REJECTED"
    status_code = 400


class GenerationCancelledError(MindClearError):
    """The caller gave up while the phase engine was still regenerating."""

    code = "GENERATION_CANCELLED"
    status_code = 499


class NotFoundError(MindClearError):
    code = "NOT_FOUND"
    status_code = 404


# Stable provider categories.
PROVIDER_QUOTA_EXCEEDED = "PROVIDER_QUOTA_EXCEEDED"
PROVIDER_AUTH_FAILED = "PROVIDER_AUTH_FAILED"
PROVIDER_RATE_LIMITED = "PROVIDER_RATE_LIMITED"
PROVIDER_EMPTY_RESPONSE = "PROVIDER_EMPTY_RESPONSE"
PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"
PROVIDER_NOT_CONFIGURED = "PROVIDER_NOT_CONFIGURED"
PROVIDER_ERROR = "PROVIDER_ERROR"

# Response schema categories.
MALFORMED_JSON = "MALFORMED_JSON"
SCHEMA_VIOLATION = "SCHEMA_VIOLATION"
