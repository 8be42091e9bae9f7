import time

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import get_settings
from .core.logging import configure_logging, get_logger, get_trace_id
from .core.metrics import record_http_request
from .core.middleware import TraceIDMiddleware
from .routes import ai, health, metrics
from .services.ai.errors import AIOperationFailedError, AIOrchestrationError
from .services.ai.orchestration import build_ai_operation_service

settings = get_settings()

# JSON output in production (containerized), console output in development
configure_logging(log_level=settings.log_level, json_output=settings.log_json)

logger = get_logger(__name__)

app = FastAPI(
    title="CaseFlow AI Orchestration API",
    description="AI-assisted summaries, recommendations and completeness checks for case management",
    version="1.0.0"
)

# CORS for local dev; restrict in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Must be after CORS middleware
app.add_middleware(TraceIDMiddleware)


@app.on_event("startup")
async def startup_event():
    """Build the AI operation service on application startup."""
    logger.info("app_startup_started")

    app.state.ai_service = build_ai_operation_service(settings)

    if not settings.llm_api_key:
        logger.warning(
            "app_startup_llm_unconfigured",
            message="No LLM API key configured. AI operations will return fallback results.",
        )
    else:
        logger.info(
            "app_startup_llm_ready",
            model=settings.llm_model,
            fallback_enabled=settings.ai_fallback_enabled,
        )

    logger.info("app_startup_completed")


@app.on_event("shutdown")
async def shutdown_event():
    """Wait for outstanding audit writes before exiting."""
    logger.info("app_shutdown_started")
    service = getattr(app.state, "ai_service", None)
    if service is not None:
        await service.auditor.flush()
    logger.info("app_shutdown_completed")


def _error_response(status_code: int, detail: str) -> JSONResponse:
    trace_id = get_trace_id()
    response = JSONResponse(
        status_code=status_code,
        content={
            "detail": detail,
            "status_code": status_code,
            "trace_id": trace_id,
        }
    )
    if trace_id:
        response.headers["X-Trace-ID"] = trace_id
    return response


# Error handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions."""
    # Set by TraceIDMiddleware
    start_time = getattr(request.state, "start_time", time.time())
    duration = time.time() - start_time

    record_http_request(
        method=request.method,
        endpoint=request.url.path,
        status_code=exc.status_code,
        duration_seconds=duration,
    )

    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
    )
    return _error_response(exc.status_code, exc.detail)


@app.exception_handler(AIOrchestrationError)
async def ai_orchestration_exception_handler(request: Request, exc: AIOrchestrationError):
    """
    AIOperationFailedError (fallback disabled) maps to 502; anything else from
    the orchestration layer is a configuration error and maps to 500.
    """
    status_code = 502 if isinstance(exc, AIOperationFailedError) else 500
    logger.error(
        "ai_orchestration_error",
        status_code=status_code,
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
    )
    return _error_response(status_code, str(exc))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    return _error_response(500, "Internal server error")


# Include routers
app.include_router(health.router, prefix="/health", tags=["Health"])
app.include_router(ai.router, prefix="/ai", tags=["AI"])
app.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])
