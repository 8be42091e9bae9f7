"""
Health check endpoints.
"""
from fastapi import APIRouter, Request

from caseflow.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/")
async def health_check():
    """
    Basic health check endpoint.
    """
    return {
        "status": "ok",
        "message": "API is running"
    }


@router.get("/llm")
async def llm_health(request: Request):
    """
    Health of the model provider connection.

    Returns:
        - configured: whether an API key is set
        - model: configured model ID
        - circuit_breaker: breaker metrics (state, failure rate, window size)
        - fallback_enabled: whether failures degrade to fallback results
    """
    service = getattr(request.app.state, "ai_service", None)
    if service is None:
        return {
            "status": "unavailable",
            "configured": False,
            "message": "AI operation service not initialized",
        }

    client = service.transport
    breaker = getattr(client, "circuit_breaker", None)
    configured = bool(getattr(client, "api_key", None))

    response = {
        "configured": configured,
        "model": getattr(client, "model", None),
        "fallback_enabled": service.fallback_enabled,
    }
    if breaker is not None:
        response["circuit_breaker"] = breaker.get_metrics()
        circuit_open = response["circuit_breaker"]["state"] == "open"
    else:
        circuit_open = False

    if not configured:
        response["status"] = "degraded"
        response["message"] = "LLM API key not configured; operations return fallback results"
    elif circuit_open:
        response["status"] = "degraded"
        response["message"] = "Circuit breaker open; operations return fallback results"
    else:
        response["status"] = "ok"
        response["message"] = "Model provider is reachable"
    return response
