"""
Error taxonomy for the AI orchestration layer.

Only ConfigurationError (and its subclasses) is expected to reach callers of
the operation service. Transport failures and invalid model output are
recovered through the fallback path; audit write failures are swallowed.
"""
from typing import List, Optional


class AIOrchestrationError(Exception):
    """Base class for AI orchestration errors."""


class ConfigurationError(AIOrchestrationError):
    """A programming or deployment error, never a runtime degradation."""


class UnknownOperationError(ConfigurationError):
    def __init__(self, key: str):
        super().__init__(f"No template registered for: {key}")
        self.key = key


class DuplicateTemplateError(ConfigurationError):
    def __init__(self, key: str):
        super().__init__(f"Template already registered for: {key}")
        self.key = key


class TransportError(AIOrchestrationError):
    """
    The model provider call failed (timeout, auth, rate limit, network,
    malformed provider payload or open circuit).
    """

    def __init__(
        self,
        message: str,
        error_type: str = "transport",
        retryable: bool = False,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.retryable = retryable
        self.status_code = status_code


class AIOperationFailedError(AIOrchestrationError):
    """
    Raised instead of returning a fallback result when the operation service
    was built with ``fallback_enabled=False``.
    """

    def __init__(self, operation: str, reason: str, errors: Optional[List[str]] = None):
        super().__init__(f"{operation} failed: {reason}")
        self.operation = operation
        self.reason = reason
        self.errors = errors or []
