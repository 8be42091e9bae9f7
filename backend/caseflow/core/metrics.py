"""
Prometheus metrics collection module.

Metrics Categories:
- RED Metrics for the HTTP surface: Rate, Errors, Duration
- AI operation metrics: outcome per operation, fallbacks, validation failures,
  audit write failures
- LLM transport metrics: requests, latency, errors, tokens, cost

Naming follows Prometheus conventions:
- Counters: _total suffix
- Histograms: _seconds suffix for duration
"""
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)

from caseflow.core.logging import get_logger

logger = get_logger(__name__)

registry = REGISTRY

# ============================================================================
# RED METRICS - Rate, Errors, Duration
# ============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status"],
    registry=registry,
)

http_errors_total = Counter(
    "http_errors_total",
    "Total number of HTTP errors",
    ["method", "endpoint", "status_code"],
    registry=registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=registry,
)

# ============================================================================
# AI OPERATION METRICS
# ============================================================================

ai_operations_total = Counter(
    "ai_operations_total",
    "Total number of AI operations by outcome",
    ["operation", "outcome"],  # outcome: success | fallback | error
    registry=registry,
)

ai_operation_duration_seconds = Histogram(
    "ai_operation_duration_seconds",
    "End-to-end AI operation latency in seconds",
    ["operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=registry,
)

ai_validation_failures_total = Counter(
    "ai_validation_failures_total",
    "Model responses rejected by the response validator",
    ["operation"],
    registry=registry,
)

ai_fallbacks_total = Counter(
    "ai_fallbacks_total",
    "Fallback results synthesized instead of model output",
    ["operation", "reason"],  # reason: transport | validation
    registry=registry,
)

ai_audit_write_failures_total = Counter(
    "ai_audit_write_failures_total",
    "Interaction records that could not be written to the store",
    registry=registry,
)

# ============================================================================
# LLM TRANSPORT METRICS
# ============================================================================

llm_requests_total = Counter(
    "llm_requests_total",
    "Total number of LLM provider requests",
    ["model"],
    registry=registry,
)

llm_request_duration_seconds = Histogram(
    "llm_request_duration_seconds",
    "LLM provider request latency in seconds",
    ["model"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=registry,
)

llm_errors_total = Counter(
    "llm_errors_total",
    "LLM provider request failures",
    ["error_type"],
    registry=registry,
)

llm_tokens_total = Counter(
    "llm_tokens_total",
    "Tokens consumed by LLM requests",
    ["model", "direction"],  # direction: input | output
    registry=registry,
)

llm_cost_usd_total = Counter(
    "llm_cost_usd_total",
    "Estimated LLM spend in USD",
    ["model"],
    registry=registry,
)


def normalize_endpoint(path: str) -> str:
    """
    Normalize endpoint path for metrics (remove IDs, query params).

    Examples:
        /ai/interactions/case-123 -> /ai/interactions/{case_id}
        /health?verbose=1 -> /health
    """
    if "?" in path:
        path = path.split("?")[0]

    if path.startswith("/ai/interactions/"):
        return "/ai/interactions/{case_id}"

    return path


def record_http_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record HTTP request metrics (RED metrics)."""
    normalized_endpoint = normalize_endpoint(endpoint)

    http_requests_total.labels(
        method=method,
        endpoint=normalized_endpoint,
        status=str(status_code),
    ).inc()

    if status_code >= 400:
        http_errors_total.labels(
            method=method,
            endpoint=normalized_endpoint,
            status_code=str(status_code),
        ).inc()

    http_request_duration_seconds.labels(
        method=method,
        endpoint=normalized_endpoint,
    ).observe(duration_seconds)


def record_ai_operation(operation: str, outcome: str, duration_seconds: float) -> None:
    """
    Record the outcome of one orchestrated AI operation.

    Args:
        operation: Operation identifier (e.g. "generate_summary")
        outcome: "success", "fallback" or "error"
        duration_seconds: Wall time from prompt build to result
    """
    ai_operations_total.labels(operation=operation, outcome=outcome).inc()
    ai_operation_duration_seconds.labels(operation=operation).observe(duration_seconds)


def record_ai_validation_failure(operation: str) -> None:
    ai_validation_failures_total.labels(operation=operation).inc()


def record_ai_fallback(operation: str, reason: str) -> None:
    ai_fallbacks_total.labels(operation=operation, reason=reason).inc()


def record_audit_write_failure() -> None:
    ai_audit_write_failures_total.inc()


def record_llm_request(model: str, duration_seconds: float) -> None:
    llm_requests_total.labels(model=model).inc()
    llm_request_duration_seconds.labels(model=model).observe(duration_seconds)


def record_llm_error(error_type: str) -> None:
    """
    Record an LLM transport failure.

    Args:
        error_type: e.g. "timeout", "rate_limited", "auth", "http_error",
            "network", "circuit_open", "missing_api_key", "invalid_payload"
    """
    llm_errors_total.labels(error_type=error_type).inc()


def record_llm_tokens_and_cost(
    model: str,
    input_tokens: int,
    output_tokens: int,
    cost_usd: float = 0.0,
) -> None:
    if input_tokens:
        llm_tokens_total.labels(model=model, direction="input").inc(input_tokens)
    if output_tokens:
        llm_tokens_total.labels(model=model, direction="output").inc(output_tokens)
    if cost_usd > 0:
        llm_cost_usd_total.labels(model=model).inc(cost_usd)


def get_metrics() -> bytes:
    """Get Prometheus metrics in text format."""
    return generate_latest(registry)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
