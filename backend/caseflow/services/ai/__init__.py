"""
AI orchestration services package.

Runs the six AI-backed case operations through one state machine:
template lookup, prompt render, model invocation, response validation,
fallback synthesis on failure, and an audit record for every attempt.

Model output is advisory. Nothing in this package changes case state.
"""
from .errors import (
    AIOperationFailedError,
    AIOrchestrationError,
    ConfigurationError,
    DuplicateTemplateError,
    TransportError,
    UnknownOperationError,
)
from .orchestration import AIOperationService, build_ai_operation_service
from .templates import Operation, OperationTemplate, TemplateRegistry, build_default_registry

__all__ = [
    "AIOperationFailedError",
    "AIOrchestrationError",
    "AIOperationService",
    "ConfigurationError",
    "DuplicateTemplateError",
    "Operation",
    "OperationTemplate",
    "TemplateRegistry",
    "TransportError",
    "UnknownOperationError",
    "build_ai_operation_service",
    "build_default_registry",
]
