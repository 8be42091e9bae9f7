"""
Structured logging configuration for the CaseFlow AI service.

JSON-structured logging with correlation IDs. Every entry carries:
- timestamp (ISO 8601 format)
- level
- service (service name identifier)
- trace_id / request_id (set per HTTP request by TraceIDMiddleware)
- case_id (bound by the AI orchestrator while an operation runs)
"""
import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

import structlog
from structlog.types import Processor

trace_id_var: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
case_id_var: ContextVar[Optional[str]] = ContextVar("case_id", default=None)

SERVICE_NAME = "caseflow_ai_api"


def add_request_context(
    logger: structlog.BoundLogger,
    method_name: str,
    event_dict: Dict[str, Any],
) -> Dict[str, Any]:
    """Copy trace_id, request_id and case_id from context into the entry."""
    trace_id = trace_id_var.get()
    if trace_id:
        event_dict["trace_id"] = trace_id

    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id

    # An explicit case_id passed to the log call wins over the context value.
    case_id = case_id_var.get()
    if case_id and "case_id" not in event_dict:
        event_dict["case_id"] = case_id

    event_dict["service"] = SERVICE_NAME

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

    return event_dict


def configure_logging(
    log_level: str = "INFO",
    service_name: Optional[str] = None,
    json_output: bool = True,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Service name identifier (defaults to SERVICE_NAME)
        json_output: JSON lines when True, coloured console output otherwise
    """
    global SERVICE_NAME
    if service_name:
        SERVICE_NAME = service_name

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_request_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """Get a structured logger, typically with ``__name__``."""
    return structlog.get_logger(name)


def set_trace_id(trace_id: Optional[str]) -> None:
    """
    Set trace ID in context for the current request.

    Args:
        trace_id: Trace ID to set (or None to clear)
    """
    trace_id_var.set(trace_id)


def get_trace_id() -> Optional[str]:
    """
    Get the current trace ID from context.

    Returns:
        Current trace ID or None
    """
    return trace_id_var.get()


def set_request_id(request_id: Optional[str]) -> None:
    """
    Set request ID in context for the current request.

    Args:
        request_id: Request ID to set (or None to clear)
    """
    request_id_var.set(request_id)


def get_request_id() -> Optional[str]:
    """
    Get the current request ID from context.

    Returns:
        Current request ID or None
    """
    return request_id_var.get()


def get_case_id() -> Optional[str]:
    """
    Get the case ID bound by the enclosing case_context.

    Returns:
        Current case ID or None
    """
    return case_id_var.get()


@contextmanager
def case_context(case_id: Optional[str]) -> Iterator[None]:
    """
    Bind a case ID to every log entry emitted inside the block.

    The previous value is restored on exit, so nested or concurrent
    operations (each running in its own task context) do not leak IDs
    into one another.
    """
    token = case_id_var.set(case_id)
    try:
        yield
    finally:
        case_id_var.reset(token)


def generate_request_id() -> str:
    """
    Generate a new unique request ID.

    Returns:
        UUID4 string
    """
    return str(uuid.uuid4())


def generate_trace_id() -> str:
    """
    Generate a new trace ID for requests that arrive without one.

    Returns:
        UUID4 string
    """
    return str(uuid.uuid4())
