"""
Unit tests for the model provider HTTP client.

Uses httpx.MockTransport; no network access. Backoff sleeps are recorded
instead of awaited.
"""
import json

import httpx
import pytest

from caseflow.core.circuit_breaker import CircuitBreaker, CircuitState
from caseflow.core.config import Settings
from caseflow.services.ai.errors import TransportError
from caseflow.services.ai.llm_client import LLMClient, backoff_delay, build_llm_client
from caseflow.services.ai.schema import InvocationParameters

PARAMS = InvocationParameters(temperature=0.3, max_output_tokens=500)


def completion(content='{"ok": true}', model="x-ai/grok-beta", prompt_tokens=120, completion_tokens=80):
    return {
        "model": model,
        "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": prompt_tokens, "completion_tokens": completion_tokens},
    }


class Recorder:
    """MockTransport handler that replays scripted responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        status, body = item
        return httpx.Response(status, json=body)


def make_client(handler, api_key="test-key", max_attempts=3, **kwargs):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    client = LLMClient(
        api_base="https://llm.example.test/api/v1",
        api_key=api_key,
        model="x-ai/grok-beta",
        max_attempts=max_attempts,
        transport=httpx.MockTransport(handler),
        sleep=fake_sleep,
        **kwargs,
    )
    return client, sleeps


@pytest.mark.parametrize("attempt,delay", [(1, 1.0), (2, 2.0), (3, 4.0), (4, 8.0), (5, 10.0), (9, 10.0)])
def test_backoff_delay(attempt, delay):
    assert backoff_delay(attempt) == delay


@pytest.mark.asyncio
async def test_successful_completion():
    handler = Recorder((200, completion()))
    client, sleeps = make_client(handler, cost_per_1k_tokens=0.002)

    response = await client.invoke_model("Summarize the case", PARAMS)

    assert response.text == '{"ok": true}'
    assert response.model_id == "x-ai/grok-beta"
    assert response.input_tokens == 120
    assert response.output_tokens == 80
    assert response.total_tokens == 200
    assert response.finish_reason == "stop"
    assert response.cost_usd == pytest.approx(0.0004)
    assert sleeps == []

    request = handler.requests[0]
    assert request.url.path == "/api/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer test-key"
    body = json.loads(request.content)
    assert body["model"] == "x-ai/grok-beta"
    assert body["messages"] == [{"role": "user", "content": "Summarize the case"}]
    assert body["max_tokens"] == 500
    assert body["temperature"] == pytest.approx(0.3)


@pytest.mark.asyncio
async def test_cost_is_unset_without_rate():
    client, _ = make_client(Recorder((200, completion())))
    response = await client.invoke_model("prompt", PARAMS)
    assert response.cost_usd is None


@pytest.mark.asyncio
async def test_missing_api_key_fails_without_request():
    handler = Recorder((200, completion()))
    client, _ = make_client(handler, api_key=None)

    with pytest.raises(TransportError) as excinfo:
        await client.invoke_model("prompt", PARAMS)

    assert excinfo.value.error_type == "missing_api_key"
    assert str(excinfo.value) == "LLM API key not configured"
    assert handler.requests == []


@pytest.mark.asyncio
async def test_server_error_is_retried():
    handler = Recorder((503, {"error": "unavailable"}), (200, completion()))
    client, sleeps = make_client(handler)

    response = await client.invoke_model("prompt", PARAMS)

    assert response.text == '{"ok": true}'
    assert len(handler.requests) == 2
    assert sleeps == [1.0]


@pytest.mark.asyncio
async def test_rate_limit_exhausts_attempts():
    handler = Recorder((429, {"error": "slow down"}))
    client, sleeps = make_client(handler, max_attempts=3)

    with pytest.raises(TransportError) as excinfo:
        await client.invoke_model("prompt", PARAMS)

    assert excinfo.value.error_type == "rate_limited"
    assert excinfo.value.status_code == 429
    assert str(excinfo.value).startswith("LLM request failed after 3 attempt(s)")
    assert len(handler.requests) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403, 400])
async def test_client_errors_are_not_retried(status):
    handler = Recorder((status, {"error": "nope"}))
    client, sleeps = make_client(handler)

    with pytest.raises(TransportError) as excinfo:
        await client.invoke_model("prompt", PARAMS)

    assert excinfo.value.retryable is False
    assert excinfo.value.status_code == status
    assert len(handler.requests) == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_timeout_is_retried():
    request = httpx.Request("POST", "https://llm.example.test/api/v1/chat/completions")
    handler = Recorder(httpx.ReadTimeout("timed out", request=request), (200, completion()))
    client, sleeps = make_client(handler)

    response = await client.invoke_model("prompt", PARAMS)

    assert response.model_id == "x-ai/grok-beta"
    assert sleeps == [1.0]


@pytest.mark.asyncio
async def test_network_error_maps_to_transport_error():
    request = httpx.Request("POST", "https://llm.example.test/api/v1/chat/completions")
    handler = Recorder(httpx.ConnectError("refused", request=request))
    client, _ = make_client(handler, max_attempts=1)

    with pytest.raises(TransportError) as excinfo:
        await client.invoke_model("prompt", PARAMS)

    assert excinfo.value.error_type == "network"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"choices": []},
        {"choices": [{"message": {"content": ""}}]},
        {"choices": [{"message": {}}]},
    ],
)
async def test_empty_completion_is_invalid_payload(body):
    client, _ = make_client(Recorder((200, body)), max_attempts=1)

    with pytest.raises(TransportError) as excinfo:
        await client.invoke_model("prompt", PARAMS)

    assert excinfo.value.error_type == "invalid_payload"


@pytest.mark.asyncio
async def test_open_circuit_short_circuits_requests():
    handler = Recorder((500, {"error": "down"}))
    client, _ = make_client(handler, max_attempts=1)
    client.circuit_breaker = CircuitBreaker("llm_test", failure_threshold=0.5, min_requests=1)

    with pytest.raises(TransportError):
        await client.invoke_model("prompt", PARAMS)
    assert client.circuit_breaker.state == CircuitState.OPEN

    with pytest.raises(TransportError) as excinfo:
        await client.invoke_model("prompt", PARAMS)

    assert excinfo.value.error_type == "circuit_open"
    assert len(handler.requests) == 1


def test_build_llm_client_from_settings():
    settings = Settings(
        llm_api_key="key",
        llm_model="openai/gpt-4o-mini",
        llm_timeout_seconds=5,
        llm_max_retry_attempts=2,
    )
    client = build_llm_client(settings, transport=httpx.MockTransport(Recorder((200, completion()))))

    assert client.api_key == "key"
    assert client.model == "openai/gpt-4o-mini"
    assert client.timeout_seconds == 5
    assert client.max_attempts == 2
    assert client.circuit_breaker.name == "llm_provider"
