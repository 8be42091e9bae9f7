"""
Async transport for the model provider.

- Plain httpx against an OpenAI-compatible /chat/completions API (OpenRouter
  by default); no provider SDKs
- Bounded retry with exponential backoff for retryable failures
- Circuit breaker around each HTTP attempt
- Every failure surfaces as TransportError; the orchestrator decides what to
  do with it
"""
import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from caseflow.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError
from caseflow.core.config import Settings
from caseflow.core.logging import get_logger
from caseflow.core.metrics import (
    record_llm_error,
    record_llm_request,
    record_llm_tokens_and_cost,
)
from caseflow.services.ai.errors import TransportError
from caseflow.services.ai.schema import InvocationParameters, ModelResponse

logger = get_logger(__name__)

BACKOFF_BASE_SECONDS = 1.0
BACKOFF_MAX_SECONDS = 10.0


def backoff_delay(attempt: int) -> float:
    """Delay before retrying after ``attempt`` (1-based) failed."""
    return min(BACKOFF_BASE_SECONDS * (2 ** (attempt - 1)), BACKOFF_MAX_SECONDS)


def _classify_status(exc: httpx.HTTPStatusError) -> TransportError:
    status = exc.response.status_code
    if status in (401, 403):
        return TransportError(f"Authentication failed ({status})", "auth", False, status)
    if status == 429:
        return TransportError("Rate limited by model provider (429)", "rate_limited", True, status)
    if status >= 500:
        return TransportError(f"Model provider error ({status})", "http_error", True, status)
    return TransportError(f"Model provider rejected request ({status})", "http_error", False, status)


class LLMClient:
    """Async HTTP client implementing ``invoke_model``."""

    def __init__(
        self,
        api_base: str,
        api_key: Optional[str],
        model: str,
        timeout_seconds: float = 30.0,
        max_attempts: int = 3,
        cost_per_1k_tokens: float = 0.0,
        site_url: str = "http://localhost:3001",
        app_name: str = "caseflow-ai",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max(1, max_attempts)
        self.cost_per_1k_tokens = cost_per_1k_tokens
        self.site_url = site_url
        self.app_name = app_name
        self._transport = transport
        self._sleep = sleep

        self.circuit_breaker = CircuitBreaker(
            name="llm_provider",
            failure_threshold=0.5,
            time_window_seconds=60,
            open_duration_seconds=30,
            min_requests=10,
        )

    async def _post(self, path: str, json_payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": self.site_url,
            "X-Title": self.app_name,
        }
        async with httpx.AsyncClient(
            base_url=self.api_base,
            timeout=self.timeout_seconds,
            transport=self._transport,
        ) as client:
            response = await client.post(path, headers=headers, json=json_payload)
            response.raise_for_status()
            return response.json()

    async def _attempt(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """One provider call, with every failure mapped to TransportError."""
        try:
            return await self.circuit_breaker.call_async(self._post, "/chat/completions", payload)
        except CircuitBreakerOpenError as exc:
            raise TransportError(str(exc), "circuit_open", False) from exc
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"Model provider timed out after {self.timeout_seconds}s", "timeout", True
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise _classify_status(exc) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Network error: {exc}", "network", True) from exc
        except ValueError as exc:
            raise TransportError("Model provider returned non-JSON body", "invalid_payload", True) from exc

    @staticmethod
    def _extract(data: Dict[str, Any]) -> Dict[str, Any]:
        choices = data.get("choices") or []
        if not choices:
            raise TransportError("No choices returned from model provider", "invalid_payload", True)
        choice = choices[0] or {}
        content = (choice.get("message") or {}).get("content")
        if not content:
            raise TransportError("No content in model provider response", "invalid_payload", True)
        return {"content": content, "finish_reason": choice.get("finish_reason")}

    async def invoke_model(self, prompt: str, parameters: InvocationParameters) -> ModelResponse:
        """
        Send ``prompt`` as a single user message.

        Raises:
            TransportError when the key is missing, the circuit is open, or every
            attempt failed. Non-retryable failures (auth, other 4xx) stop early.
        """
        if not self.api_key:
            record_llm_error("missing_api_key")
            raise TransportError("LLM API key not configured", "missing_api_key", False)

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": parameters.max_output_tokens,
            "temperature": parameters.temperature,
        }

        start = time.time()
        last_error: Optional[TransportError] = None
        attempt = 0

        while attempt < self.max_attempts:
            attempt += 1
            attempt_start = time.time()
            try:
                data = await self._attempt(payload)
                extracted = self._extract(data)
            except TransportError as exc:
                record_llm_request(self.model, time.time() - attempt_start)
                last_error = exc
                record_llm_error(exc.error_type)
                logger.warning(
                    "llm_attempt_failed",
                    model=self.model,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=str(exc),
                    error_type=exc.error_type,
                    retryable=exc.retryable,
                )
                if not exc.retryable or attempt >= self.max_attempts:
                    break
                await self._sleep(backoff_delay(attempt))
                continue

            record_llm_request(self.model, time.time() - attempt_start)
            usage = data.get("usage") or {}
            input_tokens = int(usage.get("prompt_tokens") or 0)
            output_tokens = int(usage.get("completion_tokens") or 0)
            model_id = data.get("model") or self.model

            cost_usd: Optional[float] = None
            if self.cost_per_1k_tokens > 0:
                cost_usd = (input_tokens + output_tokens) / 1000.0 * self.cost_per_1k_tokens
            record_llm_tokens_and_cost(model_id, input_tokens, output_tokens, cost_usd or 0.0)

            return ModelResponse(
                text=extracted["content"],
                model_id=model_id,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                latency_ms=(time.time() - start) * 1000.0,
                finish_reason=extracted["finish_reason"],
                cost_usd=cost_usd,
            )

        raise TransportError(
            f"LLM request failed after {attempt} attempt(s): {last_error}",
            error_type=last_error.error_type,
            retryable=last_error.retryable,
            status_code=last_error.status_code,
        ) from last_error


def build_llm_client(settings: Settings, **overrides: Any) -> LLMClient:
    """Create a client from resolved settings."""
    return LLMClient(
        api_base=settings.llm_api_base,
        api_key=settings.llm_api_key,
        model=settings.llm_model,
        timeout_seconds=settings.llm_timeout_seconds,
        max_attempts=settings.llm_max_retry_attempts,
        cost_per_1k_tokens=settings.llm_cost_per_1k_tokens,
        site_url=settings.site_url,
        app_name=settings.app_name,
        **overrides,
    )
